# seriescast/services/predictor.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Protocol

import numpy as np

ALGORITHM_VERSION = "mean_v1"
DEFAULT_WINDOW = 7


class DatedValue(Protocol):
    date: date
    value: float


@dataclass(frozen=True)
class EvaluationResult:
    error: float
    absolute_error: float
    percentage_error: float


def rolling_mean(points: Iterable[DatedValue], window_size: int = DEFAULT_WINDOW) -> float:
    """
    Mean of the last min(window_size, len(points)) values, ordered by date.
    Spacing between dates is ignored; callers assemble the window.
    """
    ordered = sorted(points, key=lambda p: p.date)
    if not ordered:
        return 0.0
    n = min(window_size, len(ordered))
    tail = np.asarray([p.value for p in ordered[-n:]], dtype=float)
    return float(tail.mean())


def evaluate(predicted: float, actual: float) -> EvaluationResult:
    """
    Score a forecast against the observed value.

    percentage_error divides by |actual|, or by 1 when actual is exactly zero,
    so a zero actual reports the absolute error as the percentage.
    """
    error = float(actual) - float(predicted)
    absolute_error = abs(error)
    denom = abs(actual) if actual != 0 else 1.0
    return EvaluationResult(
        error=error,
        absolute_error=absolute_error,
        percentage_error=absolute_error / denom,
    )
