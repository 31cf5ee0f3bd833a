from __future__ import annotations

import functools
import time
from typing import Any, Callable, TypeVar

import structlog

F = TypeVar("F", bound=Callable[..., Any])

logger = structlog.get_logger("job")


def log_job(name: str) -> Callable[[F], F]:
    """Decorator to measure a service operation's duration and emit structured logs."""

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any):
            start = time.perf_counter()
            logger.info("job.start", job=name)
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                duration = (time.perf_counter() - start) * 1000
                logger.warning(
                    "job.error",
                    job=name,
                    duration_ms=round(duration, 2),
                    exc_type=type(exc).__name__,
                    error=str(exc),
                )
                raise
            duration = (time.perf_counter() - start) * 1000
            logger.info("job.completed", job=name, duration_ms=round(duration, 2))
            return result

        return wrapper  # type: ignore[return-value]

    return decorator
