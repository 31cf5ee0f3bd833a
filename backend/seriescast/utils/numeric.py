# seriescast/utils/numeric.py
from __future__ import annotations

import math
from typing import Iterable, Optional, Union

Number = Union[int, float]


def parse_finite(value) -> Optional[float]:
    """
    Float conversion that returns None for unparseable input and for NaN/±inf.
    Digit separators ("1_000") are not numbers here even though float() takes them.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value or "_" in value:
            return None
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(num):
        return None
    return num


def is_integral(value: Number) -> bool:
    return float(value).is_integer()


def all_integral(values: Iterable[Number]) -> bool:
    return all(is_integral(v) for v in values)


def round_half_up(value: float) -> float:
    """Round to the nearest integer with .5 going towards +inf (2.5 -> 3, -2.5 -> -2)."""
    return float(math.floor(value + 0.5))


def safe_divide(numerator, denominator) -> Optional[float]:
    """
    Divide while guarding against None/zero/invalid values.
    """
    if numerator is None or denominator in (None, 0):
        return None
    try:
        return float(numerator) / float(denominator)
    except (TypeError, ValueError, ZeroDivisionError):
        return None


__all__ = ["parse_finite", "is_integral", "all_integral", "round_half_up", "safe_divide"]
