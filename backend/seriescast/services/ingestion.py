from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, List, Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from seriescast.config import get_settings
from seriescast.models import DataPoint, Evaluation, Prediction, Series
from seriescast.observability.instrument import log_job
from seriescast.observability.metrics import (
    EVALUATION_FAILURES,
    EVALUATIONS_RECORDED,
    ROWS_INGESTED,
    ROWS_SKIPPED,
    UPLOADS_REJECTED,
)
from seriescast.services.csv_validator import SeriesRow, validate_csv
from seriescast.services.errors import (
    CsvValidationError,
    FrequencyMismatchError,
    FrontierGapError,
    SeriesCastError,
)
from seriescast.services.locks import load_series_for_update, series_lock
from seriescast.services.predictor import evaluate

logger = structlog.get_logger(__name__)


@dataclass
class IngestionStats:
    added: int
    skipped: int

    def as_dict(self) -> Dict[str, int]:
        return {"added": self.added, "skipped": self.skipped}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def get_frontier(db: Session, series_id: int) -> Optional[date]:
    """Max stored DataPoint date for the series, or None when it has no data."""
    stmt = select(func.max(DataPoint.date)).where(DataPoint.series_id == series_id)
    return db.execute(stmt).scalar()


def _check_frequency(series: Series, file_frequency: int) -> None:
    if series.frequency_days is not None and series.frequency_days != file_frequency:
        raise FrequencyMismatchError(series.frequency_days, file_frequency)


def _partition_rows(rows: List[SeriesRow], frontier: Optional[date]) -> tuple[List[SeriesRow], int]:
    """Split sorted rows into (rows past the frontier, skipped count)."""
    if frontier is None:
        return list(rows), 0
    fresh = [r for r in rows if r.date > frontier]
    return fresh, len(rows) - len(fresh)


def _check_frontier_gap(fresh: List[SeriesRow], frontier: Optional[date], frequency_days: int) -> None:
    if frontier is None or not fresh:
        return
    expected = frontier + timedelta(days=frequency_days)
    if fresh[0].date != expected:
        raise FrontierGapError(
            f"Upload must continue the series at {expected.isoformat()}, "
            f"but the first new row is {fresh[0].date.isoformat()}.",
            details={"expected_date": expected.isoformat(), "found_date": fresh[0].date.isoformat()},
        )


def evaluate_pending_predictions(db: Session, series_id: int, inserted: List[SeriesRow]) -> int:
    """
    Write an Evaluation for every Prediction whose target date just received real data
    and that has not been evaluated yet. Returns the number of Evaluations created.
    """
    if not inserted:
        return 0
    actual_by_date = {r.date: r.value for r in inserted}

    stmt = (
        select(Prediction)
        .outerjoin(Evaluation, Evaluation.prediction_id == Prediction.id)
        .where(
            Prediction.series_id == series_id,
            Prediction.target_date.in_(list(actual_by_date)),
            Evaluation.id.is_(None),
        )
        .order_by(Prediction.target_date.asc())
    )
    pending = db.execute(stmt).scalars().all()

    created = 0
    for pred in pending:
        actual = actual_by_date[pred.target_date]
        result = evaluate(pred.predicted_value, actual)
        db.add(Evaluation(
            prediction_id=pred.id,
            actual_value=actual,
            error=result.error,
            absolute_error=result.absolute_error,
            percentage_error=result.percentage_error,
        ))
        created += 1
    db.flush()
    return created


def _evaluate_best_effort(db: Session, series_id: int, inserted: List[SeriesRow]) -> None:
    try:
        created = evaluate_pending_predictions(db, series_id, inserted)
        db.commit()
    except Exception as exc:
        db.rollback()
        EVALUATION_FAILURES.inc()
        logger.warning(
            "ingestion.evaluation_failed",
            series_id=series_id,
            exc_type=type(exc).__name__,
            error=str(exc),
        )
        return
    if created:
        EVALUATIONS_RECORDED.inc(created)
        logger.info("ingestion.evaluations_recorded", series_id=series_id, count=created)


# ---------------------------------------------------------------------------
# Upload state machine: parsing -> frequency-check -> append -> evaluate-pending
# ---------------------------------------------------------------------------

@log_job("ingestion.upload")
def ingest_upload(db: Session, series_id: int, text: str) -> IngestionStats:
    """
    Validate an uploaded `date,value` file and append its rows past the stored frontier.

    Every validation and consistency failure raises before anything is written.
    Evaluation of matured predictions runs after the append commits and never
    fails the upload.
    """
    settings = get_settings()

    with series_lock(series_id):
        try:
            series = load_series_for_update(db, series_id)

            # parsing
            result = validate_csv(text)
            if not result.is_valid:
                raise CsvValidationError(result.error or "Invalid CSV")
            rows = result.rows
            file_frequency = int(result.frequency_days)

            # frequency-check
            _check_frequency(series, file_frequency)

            # append
            frontier = get_frontier(db, series_id)
            fresh, skipped = _partition_rows(rows, frontier)
            if not settings.ALLOW_FRONTIER_GAPS:
                _check_frontier_gap(fresh, frontier, file_frequency)
        except SeriesCastError as exc:
            db.rollback()
            UPLOADS_REJECTED.labels(code=exc.code).inc()
            logger.info("ingestion.rejected", series_id=series_id, code=exc.code, reason=exc.message)
            raise

        if series.frequency_days is None:
            series.frequency_days = file_frequency
            logger.info("ingestion.frequency_established", series_id=series_id, frequency_days=file_frequency)

        if fresh:
            db.add_all(DataPoint(series_id=series_id, date=r.date, value=r.value) for r in fresh)
            file_max = rows[-1].date
            if series.last_date is None or file_max > series.last_date:
                series.last_date = file_max
        db.commit()

        stats = IngestionStats(added=len(fresh), skipped=skipped)
        ROWS_INGESTED.inc(stats.added)
        ROWS_SKIPPED.inc(stats.skipped)
        logger.info("ingestion.appended", series_id=series_id, **stats.as_dict())

        # evaluate-pending
        _evaluate_best_effort(db, series_id, fresh)

    return stats
