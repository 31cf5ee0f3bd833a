from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from seriescast.models import DataPoint, Evaluation, Prediction, Series
from seriescast.services.errors import InvalidBoundsError, SeriesNotFoundError
from seriescast.utils.numeric import safe_divide

logger = structlog.get_logger(__name__)


def _iso(d) -> Optional[str]:
    return d.isoformat() if d is not None else None


def series_to_dict(s: Series) -> Dict[str, Any]:
    return {
        "id": s.id,
        "owner_id": s.owner_id,
        "company": s.company,
        "place": s.place,
        "frequency_days": s.frequency_days,
        "min_bound": s.min_bound,
        "max_bound": s.max_bound,
        "last_date": _iso(s.last_date),
        "created_at": _iso(s.created_at),
    }


def evaluation_to_dict(ev: Optional[Evaluation]) -> Optional[Dict[str, Any]]:
    if ev is None:
        return None
    return {
        "actual_value": ev.actual_value,
        "error": ev.error,
        "absolute_error": ev.absolute_error,
        "percentage_error": ev.percentage_error,
        "evaluated_at": _iso(ev.evaluated_at),
    }


def prediction_to_dict(p: Prediction) -> Dict[str, Any]:
    return {
        "id": p.id,
        "target_date": p.target_date.isoformat(),
        "predicted_value": p.predicted_value,
        "algorithm_version": p.algorithm_version,
        "based_on_last_date": p.based_on_last_date.isoformat(),
        "created_at": _iso(p.created_at),
        "evaluation": evaluation_to_dict(p.evaluation),
    }


def get_live_series(db: Session, series_id: int) -> Series:
    series = db.get(Series, series_id)
    if series is None or series.is_deleted:
        raise SeriesNotFoundError(series_id)
    return series


def create_series(
    db: Session,
    *,
    company: str,
    place: str,
    min_bound: Optional[float] = None,
    max_bound: Optional[float] = None,
    owner_id: Optional[str] = None,
) -> Series:
    if min_bound is not None and max_bound is not None and min_bound > max_bound:
        raise InvalidBoundsError(
            f"min_bound ({min_bound}) must not exceed max_bound ({max_bound}).",
            details={"min_bound": min_bound, "max_bound": max_bound},
        )
    series = Series(
        company=company.strip(),
        place=place.strip(),
        min_bound=min_bound,
        max_bound=max_bound,
        owner_id=owner_id,
        is_deleted=False,
    )
    db.add(series)
    db.commit()
    db.refresh(series)
    logger.info("series.created", series_id=series.id, company=series.company, place=series.place)
    return series


def list_series(db: Session, owner_id: Optional[str] = None) -> List[Series]:
    stmt = select(Series).where(Series.is_deleted.is_(False))
    if owner_id is not None:
        stmt = stmt.where(Series.owner_id == owner_id)
    stmt = stmt.order_by(Series.created_at.desc(), Series.id.desc())
    return list(db.execute(stmt).scalars().all())


def get_series_detail(db: Session, series_id: int) -> Dict[str, Any]:
    """Series metadata, ordered history and predictions with their evaluation (or None)."""
    series = get_live_series(db, series_id)

    history = db.execute(
        select(DataPoint.date, DataPoint.value)
        .where(DataPoint.series_id == series_id)
        .order_by(DataPoint.date.asc())
    ).all()

    predictions = db.execute(
        select(Prediction)
        .options(selectinload(Prediction.evaluation))
        .where(Prediction.series_id == series_id)
        .order_by(Prediction.target_date.asc())
    ).scalars().all()

    return {
        "series": series_to_dict(series),
        "history": [{"date": d.isoformat(), "value": v} for d, v in history],
        "predictions": [prediction_to_dict(p) for p in predictions],
    }


def soft_delete_series(db: Session, series_id: int) -> Series:
    series = get_live_series(db, series_id)
    series.is_deleted = True
    db.commit()
    logger.info("series.soft_deleted", series_id=series_id)
    return series


def accuracy_summary(db: Session, series_id: int) -> Dict[str, Any]:
    """Aggregate the series' Evaluations: count, MAE, mean percentage error and bias."""
    get_live_series(db, series_id)
    count, sum_abs, sum_pct, sum_err = db.execute(
        select(
            func.count(Evaluation.id),
            func.sum(Evaluation.absolute_error),
            func.sum(Evaluation.percentage_error),
            func.sum(Evaluation.error),
        )
        .join(Prediction, Prediction.id == Evaluation.prediction_id)
        .where(Prediction.series_id == series_id)
    ).one()
    count = int(count or 0)
    return {
        "evaluated": count,
        "mean_absolute_error": safe_divide(sum_abs, count),
        "mean_percentage_error": safe_divide(sum_pct, count),
        "mean_error": safe_divide(sum_err, count),
    }
