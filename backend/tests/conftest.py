import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure backend/ is importable as the top-level "seriescast" package even when pytest runs from repo root
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

# Ensure the application runs in test/sqlite mode *before* importing any app modules
os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")

# Import the DB session module first so we can patch it before the app is imported
import seriescast.db.session as app_db_session  # type: ignore

# --- Use a single in-memory SQLite DB for the whole test session ---
ENGINE = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    future=True,
)


@event.listens_for(ENGINE, "connect")
def _sqlite_fk_on(dbapi_conn, _record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


SessionTesting = sessionmaker(bind=ENGINE, autocommit=False, autoflush=False, future=True)

# --- Ensure tests and app code share the SAME in-memory engine/sessionmaker ---
setattr(app_db_session, "ENGINE", ENGINE)
setattr(app_db_session, "engine", ENGINE)
app_db_session.SessionLocal = SessionTesting
app_db_session.get_engine = lambda: ENGINE            # type: ignore
app_db_session.get_sessionmaker = lambda: SessionTesting  # type: ignore

# Also patch the package-level seriescast.db for modules that import there
import seriescast.db as app_db_pkg  # type: ignore

setattr(app_db_pkg, "engine", ENGINE)
app_db_pkg.SessionLocal = SessionTesting

from seriescast.db.base import Base
from seriescast.db.session import get_db
from seriescast.main import app
from seriescast.services import series as series_service

Base.metadata.create_all(bind=ENGINE)


@pytest.fixture(scope="function")
def reset_db():
    Base.metadata.drop_all(bind=ENGINE)
    Base.metadata.create_all(bind=ENGINE)
    yield
    Base.metadata.drop_all(bind=ENGINE)
    Base.metadata.create_all(bind=ENGINE)


@pytest.fixture(scope="function")
def db(reset_db):
    session = SessionTesting()

    def _override_get_db():
        try:
            yield session
        finally:
            pass

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        app.dependency_overrides.pop(get_db, None)


@pytest.fixture(scope="function")
def client(db):
    with TestClient(app) as c:
        yield c


@pytest.fixture(scope="function")
def make_series(db):
    """Factory for live series rows; keyword arguments go to create_series."""

    def _make(**kwargs):
        kwargs.setdefault("company", "Acme")
        kwargs.setdefault("place", "Berlin")
        return series_service.create_series(db, **kwargs)

    return _make


def daily_csv(start: str, values) -> str:
    """Build a `date,value` CSV with one row per day starting at `start`."""
    from datetime import date, timedelta

    first = date.fromisoformat(start)
    lines = ["date,value"]
    for i, v in enumerate(values):
        lines.append(f"{(first + timedelta(days=i)).isoformat()},{v}")
    return "\n".join(lines) + "\n"


@pytest.fixture
def csv_days():
    return daily_csv
