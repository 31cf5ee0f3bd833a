# seriescast/routers/predict.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from seriescast.db.session import get_db
from seriescast.schemas.common import ok, fail_from, meta_now
from seriescast.services.errors import SeriesCastError
from seriescast.services.prediction import generate_prediction

router = APIRouter(prefix="/api/series", tags=["predict"])


@router.post("/{series_id}/predict")
def predict(series_id: int, db: Session = Depends(get_db)):
    """
    Generate the next rolling-mean forecast for a series.
    Returns {prediction, target_date, algorithm}; 400 without cadence/history, 404 for unknown series.
    """
    try:
        outcome = generate_prediction(db, series_id)
    except SeriesCastError as exc:
        return fail_from(exc, meta=meta_now(series_id=series_id))
    return ok(
        data=outcome.as_dict(),
        meta=meta_now(series_id=series_id, reused=None if outcome.created else True),
    )
