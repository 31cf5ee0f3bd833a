from __future__ import annotations

from typing import Any, Dict, Optional


class SeriesCastError(Exception):
    """Base for user-facing domain errors; routers turn these into `fail(...)` envelopes."""

    code = "BAD_REQUEST"
    status_code = 400

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class SeriesNotFoundError(SeriesCastError):
    code = "SERIES_NOT_FOUND"
    status_code = 404

    def __init__(self, series_id: int) -> None:
        super().__init__(f"Series {series_id} not found", details={"series_id": series_id})


class CsvValidationError(SeriesCastError):
    code = "INVALID_CSV"


class FrequencyMismatchError(SeriesCastError):
    code = "FREQUENCY_MISMATCH"

    def __init__(self, expected: int, found: int) -> None:
        super().__init__(
            f"Frequency mismatch. Series is {expected} days, but CSV is {found} days.",
            details={"expected_days": expected, "found_days": found},
        )


class FrontierGapError(SeriesCastError):
    code = "FRONTIER_GAP"


class InsufficientHistoryError(SeriesCastError):
    code = "INSUFFICIENT_HISTORY"


class TargetDateOutOfRangeError(SeriesCastError):
    code = "TARGET_DATE_OUT_OF_RANGE"

    def __init__(self, last_date, frequency_days: int) -> None:
        super().__init__(
            f"Next target date after {last_date.isoformat()} (+{frequency_days} days) is out of range.",
            details={"last_date": last_date.isoformat(), "frequency_days": frequency_days},
        )


class InvalidBoundsError(SeriesCastError):
    code = "INVALID_BOUNDS"
