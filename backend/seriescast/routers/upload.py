# backend/seriescast/routers/upload.py
from __future__ import annotations

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from seriescast.config import get_settings
from seriescast.db.session import get_db
from seriescast.schemas.common import ok, fail, fail_from, meta_now
from seriescast.services.errors import SeriesCastError
from seriescast.services.ingestion import ingest_upload

router = APIRouter(prefix="/api/series", tags=["upload"])
logger = structlog.get_logger(__name__)


@router.post("/{series_id}/upload")
async def upload_series_csv(
    series_id: int,
    file: Optional[UploadFile] = File(None, description="CSV file with header `date,value`"),
    db: Session = Depends(get_db),
):
    """
    Append a `date,value` CSV to a series.

    - Rows dated at or before the stored frontier are skipped, never overwritten.
    - The first successful upload fixes the series cadence; later files must match it.
    - Returns {added, skipped}; any validation failure writes nothing.
    """
    settings = get_settings()
    filename = getattr(file, "filename", None)
    meta = meta_now(series_id=series_id, filename=filename)

    if file is None:
        return fail(code="BAD_REQUEST", message="No file uploaded", status_code=400, meta=meta)

    # Read one byte past the limit so oversized uploads are detected without buffering them whole.
    raw = await file.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(raw) > settings.MAX_UPLOAD_BYTES:
        limit_mb = settings.MAX_UPLOAD_BYTES // (1024 * 1024)
        return fail(
            code="FILE_TOO_LARGE",
            message=f"File size exceeds {limit_mb}MB limit.",
            status_code=413,
            meta=meta,
        )
    if not raw or not raw.strip():
        return fail(code="EMPTY_FILE", message="CSV file is empty.", status_code=400, meta=meta)

    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        return fail(code="CSV_DECODE_ERROR", message="CSV must be UTF-8 encoded.", status_code=400, meta=meta)

    try:
        stats = await run_in_threadpool(ingest_upload, db, series_id, text)
    except SeriesCastError as exc:
        return fail_from(exc, meta=meta)

    logger.info("upload.processed", series_id=series_id, filename=filename, **stats.as_dict())
    return ok(data=stats.as_dict(), meta=meta)
