from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from seriescast.db.session import get_db
from seriescast.schemas.common import ok, fail_from, meta_now
from seriescast.schemas.series import SeriesCreate
from seriescast.services.errors import SeriesCastError
from seriescast.services import series as series_service

router = APIRouter(prefix="/api/series", tags=["series"])

@router.post("")
def create_series(body: SeriesCreate, db: Session = Depends(get_db)):
    try:
        s = series_service.create_series(
            db,
            company=body.company,
            place=body.place,
            min_bound=body.min_bound,
            max_bound=body.max_bound,
            owner_id=body.owner_id,
        )
    except SeriesCastError as exc:
        return fail_from(exc, meta=meta_now())
    return ok(data=series_service.series_to_dict(s), meta=meta_now(series_id=s.id), status_code=201)

@router.get("")
def list_series(
    owner_id: Optional[str] = Query(None, description="Only series owned by this entity"),
    db: Session = Depends(get_db),
):
    rows = series_service.list_series(db, owner_id=owner_id)
    return ok(data=[series_service.series_to_dict(r) for r in rows], meta=meta_now(owner_id=owner_id))

@router.get("/{series_id}")
def get_series(series_id: int, db: Session = Depends(get_db)):
    """Series metadata, full ordered history and predictions with their evaluation (or null)."""
    try:
        detail = series_service.get_series_detail(db, series_id)
    except SeriesCastError as exc:
        return fail_from(exc, meta=meta_now(series_id=series_id))
    return ok(data=detail, meta=meta_now(series_id=series_id))

@router.delete("/{series_id}")
def delete_series(series_id: int, db: Session = Depends(get_db)):
    try:
        series_service.soft_delete_series(db, series_id)
    except SeriesCastError as exc:
        return fail_from(exc, meta=meta_now(series_id=series_id))
    return ok(data={"id": series_id, "deleted": True}, meta=meta_now(series_id=series_id))

@router.get("/{series_id}/accuracy")
def series_accuracy(series_id: int, db: Session = Depends(get_db)):
    try:
        summary = series_service.accuracy_summary(db, series_id)
    except SeriesCastError as exc:
        return fail_from(exc, meta=meta_now(series_id=series_id))
    return ok(data=summary, meta=meta_now(series_id=series_id))
