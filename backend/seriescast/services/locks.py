from __future__ import annotations

import threading
import weakref
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import select
from sqlalchemy.orm import Session

from seriescast.models import Series
from seriescast.services.errors import SeriesNotFoundError

_registry_guard = threading.Lock()
# Entries live only while some caller holds a reference to the lock.
_series_locks: "weakref.WeakValueDictionary[int, threading.Lock]" = weakref.WeakValueDictionary()


def _lock_for(series_id: int) -> threading.Lock:
    with _registry_guard:
        lock = _series_locks.get(series_id)
        if lock is None:
            lock = threading.Lock()
            _series_locks[series_id] = lock
        return lock


@contextmanager
def series_lock(series_id: int) -> Iterator[None]:
    """Serialize read-then-write sequences on one series within this process."""
    lock = _lock_for(series_id)
    with lock:
        yield


def load_series_for_update(db: Session, series_id: int) -> Series:
    """
    Fetch a live (non-deleted) series with a row lock.
    FOR UPDATE covers multi-process deployments on PostgreSQL; SQLite ignores it.
    """
    stmt = select(Series).where(Series.id == series_id).with_for_update()
    series = db.execute(stmt).scalar_one_or_none()
    if series is None or series.is_deleted:
        raise SeriesNotFoundError(series_id)
    return series
