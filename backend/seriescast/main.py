# seriescast/main.py
from __future__ import annotations

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Import router objects explicitly to avoid module name collisions
from seriescast.routers.health import router as health_router
from seriescast.routers.series import router as series_router
from seriescast.routers.upload import router as upload_router
from seriescast.routers.predict import router as predict_router
from seriescast.db.session import get_engine
from seriescast.db.base import Base
from seriescast.observability.logging import configure_logging
from seriescast.observability.middleware import register_request_middleware, unhandled_exception_handler
from seriescast.observability.metrics import router as observability_router
from seriescast.schemas.common import API_VERSION
from seriescast.config import get_settings

configure_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Ensure tables exist in dev/test so brand-new SQLite DBs don't 500
    engine = get_engine()
    if engine.dialect.name == "sqlite":
        Base.metadata.create_all(bind=engine)
    logger.info("app.startup", dialect=engine.dialect.name)
    yield


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="SeriesCast", version=API_VERSION, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=86400
    )

    register_request_middleware(app)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(health_router)
    app.include_router(observability_router)
    app.include_router(series_router)
    app.include_router(upload_router)
    app.include_router(predict_router)

    return app


app = create_app()
