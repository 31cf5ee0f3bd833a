"""
Strict validator for uploaded `date,value` series files.

Structural checks run row by row and stop at the first violation; the
frequency check then sorts the rows and requires one constant positive
day interval, which becomes the file's cadence.
"""
from __future__ import annotations

import csv
import re
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Set, Tuple

import pandas as pd

from seriescast.utils.numeric import parse_finite

EXPECTED_HEADER = "date,value"
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_MAX_DELTAS_REPORTED = 5


@dataclass(frozen=True)
class SeriesRow:
    date: date
    value: float


@dataclass
class ValidationResult:
    is_valid: bool
    error: Optional[str] = None
    frequency_days: Optional[int] = None
    rows: List[SeriesRow] = field(default_factory=list)


def _split_lines(text: str) -> List[str]:
    if text.startswith("\ufeff"):
        text = text[1:]
    return text.strip().splitlines()


def parse_rows(text: str) -> Tuple[Optional[List[SeriesRow]], Optional[str]]:
    """Return (rows in file order, None) or (None, error message)."""
    lines = _split_lines(text)
    if len(lines) < 2:
        return None, "CSV must have a header and at least one data row."

    if lines[0].strip() != EXPECTED_HEADER:
        return None, 'Header must be exactly "date,value"'

    rows: List[SeriesRow] = []
    seen: Set[date] = set()

    try:
        reader = csv.reader(lines[1:])
        for idx, record in enumerate(reader, start=1):
            fields = [f.strip() for f in record]
            if not any(fields):
                return None, f"Row {idx}: Contains empty values."
            if len(fields) < 2:
                return None, f"Row {idx}: Missing required columns."
            if len(fields) > 2:
                return None, f"Row {idx}: Expected exactly 2 columns."

            date_str, value_str = fields
            if not date_str or not value_str:
                return None, f"Row {idx}: Contains empty values."

            if not _DATE_RE.match(date_str):
                return None, f'Row {idx}: Invalid date format "{date_str}". Expected YYYY-MM-DD.'
            try:
                day = date.fromisoformat(date_str)
            except ValueError:
                return None, f'Row {idx}: Invalid date "{date_str}".'

            value = parse_finite(value_str)
            if value is None:
                return None, f'Row {idx}: Value "{value_str}" is not a finite number.'

            if day in seen:
                return None, f"Duplicate date found in CSV: {date_str}"
            seen.add(day)

            rows.append(SeriesRow(date=day, value=value))
    except csv.Error as exc:
        return None, f"CSV Parsing Failed: {exc}"

    return rows, None


def detect_frequency(rows: List[SeriesRow]) -> Tuple[Optional[int], Optional[str]]:
    """Return (cadence in days, None) or (None, error message). `rows` must be sorted."""
    if len(rows) < 2:
        return None, "Need at least 2 data points to establish frequency."

    stamps = pd.to_datetime(pd.Series([r.date for r in rows]))
    deltas = [int(d) for d in stamps.diff().dropna().dt.days]

    if any(d <= 0 for d in deltas):
        return None, "Dates must be strictly increasing (found duplicate or unordered after sort)."

    first = deltas[0]
    if any(d != first for d in deltas):
        sample = ", ".join(str(d) for d in deltas[:_MAX_DELTAS_REPORTED])
        return None, (
            f"Invalid date series. Expected consistent interval of {first} days "
            f"but found gaps: [{sample}...]"
        )
    return first, None


def validate_csv(text: str) -> ValidationResult:
    rows, error = parse_rows(text)
    if error:
        return ValidationResult(is_valid=False, error=error)

    ordered = sorted(rows, key=lambda r: r.date)
    frequency, error = detect_frequency(ordered)
    if error:
        return ValidationResult(is_valid=False, error=error)

    return ValidationResult(is_valid=True, frequency_days=frequency, rows=ordered)
