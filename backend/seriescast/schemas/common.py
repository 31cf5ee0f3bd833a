from __future__ import annotations
from typing import Any, Dict, Optional
from fastapi import status as http
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from datetime import datetime, timezone
from fastapi.encoders import jsonable_encoder

from seriescast.services.errors import SeriesCastError

API_VERSION = "0.3.0"

class ApiError(BaseModel):
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None

class ResponseMeta(BaseModel):
    series_id: Optional[int] = None
    params: Optional[Dict[str, Any]] = None
    generated_at: str
    version: str = API_VERSION

class Envelope(BaseModel):
    ok: bool
    data: Any | None = None
    error: ApiError | None = None
    meta: ResponseMeta

def ok(data: Any = None, meta: Optional[ResponseMeta] = None, status_code: int = http.HTTP_200_OK) -> JSONResponse:
    """
    Return unified success envelope. Pass meta through as-is (don't re-wrap).
    """
    if meta is None:
        meta = meta_now()
    payload = Envelope(ok=True, data=data, error=None, meta=meta).model_dump()
    return JSONResponse(content=jsonable_encoder(payload), status_code=status_code)

def fail(
    code: str,
    message: str,
    status_code: int = http.HTTP_400_BAD_REQUEST,
    details: Optional[Dict[str, Any]] = None,
    meta: Optional[ResponseMeta] = None,
) -> JSONResponse:
    """
    Return unified error envelope with ok=False.
    """
    if meta is None:
        meta = meta_now()
    payload = Envelope(
        ok=False,
        data=None,
        error=ApiError(code=code, message=message, details=details),
        meta=meta,
    ).model_dump()
    return JSONResponse(content=jsonable_encoder(payload), status_code=status_code)

def fail_from(exc: SeriesCastError, meta: Optional[ResponseMeta] = None) -> JSONResponse:
    return fail(
        code=exc.code,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
        meta=meta,
    )

def meta_now(*, series_id: Optional[int] = None, **params) -> ResponseMeta:
    clean = {k: v for k, v in params.items() if v is not None}
    return ResponseMeta(
        series_id=series_id,
        params=clean or None,
        generated_at=datetime.now(timezone.utc).isoformat(),
    )
