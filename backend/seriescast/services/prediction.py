# seriescast/services/prediction.py
"""
Forecast generation for a series.

Target date:
- today, when a real DataPoint already exists for today's date;
- otherwise one cadence after the last date of the effective history
  (real points followed by stored predictions past the real frontier), so
  repeated requests chain forward through not-yet-confirmed forecasts.

Value: rolling mean over the recent real points plus the provisional
predictions that bridge the gap up to the target, rounded half-up when the
real sample is integer-valued, then clamped to the series bounds
(lower bound first, then upper bound).
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional, Sequence

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from seriescast.config import get_settings
from seriescast.models import DataPoint, Prediction, Series
from seriescast.observability.instrument import log_job
from seriescast.observability.metrics import PREDICTIONS_CREATED
from seriescast.services.errors import InsufficientHistoryError, TargetDateOutOfRangeError
from seriescast.services.locks import load_series_for_update, series_lock
from seriescast.services.predictor import ALGORITHM_VERSION, rolling_mean
from seriescast.utils.numeric import all_integral, round_half_up

logger = structlog.get_logger(__name__)

NO_HISTORY_MESSAGE = "Cannot predict without data history / frequency."


@dataclass(frozen=True)
class HistoryPoint:
    date: date
    value: float
    provisional: bool = False


@dataclass
class PredictionOutcome:
    prediction: float
    target_date: date
    algorithm: str
    created: bool = True

    def as_dict(self) -> dict:
        return {
            "prediction": self.prediction,
            "target_date": self.target_date.isoformat(),
            "algorithm": self.algorithm,
        }


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def effective_history(real: Sequence[HistoryPoint], provisional: Sequence[HistoryPoint]) -> List[HistoryPoint]:
    """Real points up to the frontier followed by provisional points past it, oldest first."""
    ordered_real = sorted(real, key=lambda p: p.date)
    if not ordered_real:
        return sorted(provisional, key=lambda p: p.date)
    frontier = ordered_real[-1].date
    ahead = sorted((p for p in provisional if p.date > frontier), key=lambda p: p.date)
    return ordered_real + ahead


def next_target_date(history: Sequence[HistoryPoint], frequency_days: int) -> date:
    last = history[-1].date
    try:
        return last + timedelta(days=frequency_days)
    except OverflowError:
        raise TargetDateOutOfRangeError(last, frequency_days) from None


def prediction_window(
    real: Sequence[HistoryPoint],
    provisional: Sequence[HistoryPoint],
    frontier: date,
    target: date,
) -> List[HistoryPoint]:
    """Real points plus the provisional points strictly between the frontier and the target."""
    bridge = [p for p in provisional if frontier < p.date < target]
    return sorted([*real, *bridge], key=lambda p: p.date, reverse=True)


def apply_bounds(value: float, min_bound: Optional[float], max_bound: Optional[float]) -> float:
    if min_bound is not None:
        value = max(min_bound, value)
    if max_bound is not None:
        value = min(max_bound, value)
    return value


def compute_value(
    window: Sequence[HistoryPoint],
    *,
    window_size: int,
    min_bound: Optional[float] = None,
    max_bound: Optional[float] = None,
) -> float:
    """Rolling mean over the window; only real points decide whether the result is rounded."""
    value = rolling_mean(window, window_size)
    if all_integral(p.value for p in window if not p.provisional):
        value = round_half_up(value)
    return apply_bounds(value, min_bound, max_bound)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def _recent_real_points(db: Session, series_id: int, limit: int) -> List[HistoryPoint]:
    stmt = (
        select(DataPoint.date, DataPoint.value)
        .where(DataPoint.series_id == series_id)
        .order_by(DataPoint.date.desc())
        .limit(limit)
    )
    return [HistoryPoint(date=d, value=float(v)) for d, v in db.execute(stmt).all()]


def _has_point_on(db: Session, series_id: int, day: date) -> bool:
    stmt = select(DataPoint.id).where(DataPoint.series_id == series_id, DataPoint.date == day).limit(1)
    return db.execute(stmt).first() is not None


def _predictions_after(db: Session, series_id: int, frontier: date) -> List[HistoryPoint]:
    stmt = (
        select(Prediction.target_date, Prediction.predicted_value)
        .where(Prediction.series_id == series_id, Prediction.target_date > frontier)
        .order_by(Prediction.target_date.asc())
    )
    return [HistoryPoint(date=d, value=float(v), provisional=True) for d, v in db.execute(stmt).all()]


def _existing_prediction(db: Session, series_id: int, target: date) -> Optional[Prediction]:
    stmt = select(Prediction).where(Prediction.series_id == series_id, Prediction.target_date == target)
    return db.execute(stmt).scalar_one_or_none()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

@log_job("prediction.generate")
def generate_prediction(db: Session, series_id: int, today: Optional[date] = None) -> PredictionOutcome:
    settings = get_settings()
    today = today or utc_today()

    with series_lock(series_id):
        series: Series = load_series_for_update(db, series_id)
        if series.frequency_days is None:
            db.rollback()
            raise InsufficientHistoryError(NO_HISTORY_MESSAGE)

        real = _recent_real_points(db, series_id, settings.PREDICTION_HISTORY_LIMIT)
        if not real:
            db.rollback()
            raise InsufficientHistoryError(NO_HISTORY_MESSAGE)

        frontier = real[0].date
        provisional = _predictions_after(db, series_id, frontier)

        if _has_point_on(db, series_id, today):
            target = today
        else:
            try:
                target = next_target_date(effective_history(real, provisional), series.frequency_days)
            except TargetDateOutOfRangeError:
                db.rollback()
                raise

        existing = _existing_prediction(db, series_id, target)
        if existing is not None:
            db.rollback()
            logger.info("prediction.reused", series_id=series_id, target_date=target.isoformat())
            return PredictionOutcome(
                prediction=existing.predicted_value,
                target_date=existing.target_date,
                algorithm=existing.algorithm_version,
                created=False,
            )

        window = prediction_window(real, provisional, frontier, target)
        value = compute_value(
            window,
            window_size=settings.ROLLING_WINDOW,
            min_bound=series.min_bound,
            max_bound=series.max_bound,
        )

        db.add(Prediction(
            series_id=series_id,
            target_date=target,
            predicted_value=value,
            algorithm_version=ALGORITHM_VERSION,
            based_on_last_date=frontier,
        ))
        db.commit()

    PREDICTIONS_CREATED.inc()
    logger.info(
        "prediction.created",
        series_id=series_id,
        target_date=target.isoformat(),
        value=value,
        based_on=frontier.isoformat(),
    )
    return PredictionOutcome(prediction=value, target_date=target, algorithm=ALGORITHM_VERSION)
