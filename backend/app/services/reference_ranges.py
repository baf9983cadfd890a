"""Reference interval parsing and range classification.

Maps a raw lab value plus a reference interval to a status label
(normal/low/high). Bounds are inclusive: a value equal to either bound is
normal. Values that are absent or cannot be read as a number never raise;
they resolve to the caller's ``missing`` status, ``unknown`` by default.

Interval literals come from lab sheets authored in different locales, so
parsing tolerates comma decimal separators, en dashes and irregular spacing.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any


class Status(str, Enum):
    """Classification of a measurement relative to its reference interval."""

    NORMAL = "normal"
    LOW = "low"
    HIGH = "high"
    # Only ever reported by the remote analysis service
    CRITICAL = "critical"
    # Value absent or unparseable
    UNKNOWN = "unknown"


class ReferenceRangeError(ValueError):
    """Raised when a reference interval literal is malformed."""


# A single number, optionally signed, with either decimal separator
_NUMBER = r"[-+]?\d+(?:[.,]\d+)?"

# "min-max" with any whitespace around the dash; also accepts en/em dashes
_INTERVAL_RE = re.compile(
    rf"^\s*(?P<low>{_NUMBER})\s*[-–—]\s*(?P<high>{_NUMBER})\s*$"
)


def _to_float(text: str) -> float:
    return float(text.replace(",", ".").replace(" ", ""))


@dataclass(frozen=True)
class ReferenceInterval:
    """Inclusive [low, high] interval. Invariant: low <= high."""

    low: float
    high: float

    def __post_init__(self) -> None:
        for bound in (self.low, self.high):
            if isinstance(bound, bool) or not isinstance(bound, (int, float)):
                raise ReferenceRangeError(f"Non-numeric bound: {bound!r}")
            if math.isnan(bound):
                raise ReferenceRangeError("Reference bound cannot be NaN")
        if self.low > self.high:
            raise ReferenceRangeError(
                f"Lower bound {self.low} exceeds upper bound {self.high}"
            )

    @classmethod
    def parse(cls, raw: Any) -> ReferenceInterval:
        """Build an interval from a literal or a structured pair.

        Accepts:
            "min-max" strings ("4.5-11.0", "4,5 - 11,0", "0.5   -   5.0")
            [min, max] / (min, max) sequences
            {"low": min, "high": max} mappings
            an existing ReferenceInterval

        Raises:
            ReferenceRangeError: if the literal cannot be read or min > max.
        """
        if isinstance(raw, ReferenceInterval):
            return raw

        if isinstance(raw, str):
            match = _INTERVAL_RE.match(raw)
            if match is None:
                raise ReferenceRangeError(f"Malformed reference range: {raw!r}")
            return cls(_to_float(match["low"]), _to_float(match["high"]))

        if isinstance(raw, dict):
            if "low" not in raw or "high" not in raw:
                raise ReferenceRangeError(
                    f"Reference range mapping needs 'low' and 'high': {raw!r}"
                )
            return cls(_coerce_bound(raw["low"]), _coerce_bound(raw["high"]))

        if isinstance(raw, (list, tuple)):
            if len(raw) != 2:
                raise ReferenceRangeError(
                    f"Reference range pair must have two bounds: {raw!r}"
                )
            return cls(_coerce_bound(raw[0]), _coerce_bound(raw[1]))

        raise ReferenceRangeError(f"Unsupported reference range: {raw!r}")

    def __str__(self) -> str:
        return f"{_format_bound(self.low)}-{_format_bound(self.high)}"


def _coerce_bound(bound: Any) -> float:
    if isinstance(bound, str):
        value = parse_value(bound)
        if value is None:
            raise ReferenceRangeError(f"Non-numeric bound: {bound!r}")
        return value
    if isinstance(bound, bool) or not isinstance(bound, (int, float)):
        raise ReferenceRangeError(f"Non-numeric bound: {bound!r}")
    return float(bound)


def _format_bound(bound: float) -> str:
    # 150.0 -> "150", 4.5 -> "4.5"
    return f"{bound:g}"


def parse_value(raw: Any) -> float | None:
    """Read a measured value, returning None when absent or unparseable.

    Strings may use a comma as decimal separator and carry surrounding
    whitespace. NaN is treated as unparseable; infinities are real numbers
    outside any finite interval.
    """
    if raw is None or isinstance(raw, bool):
        return None

    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        text = raw.strip()
        if not text:
            return None
        try:
            value = _to_float(text)
        except ValueError:
            return None
    else:
        return None

    if math.isnan(value):
        return None
    return value


def classify(
    value: Any,
    interval: ReferenceInterval,
    *,
    missing: Status = Status.UNKNOWN,
) -> Status:
    """Classify a value against an inclusive reference interval.

    Args:
        value: Observed value. Numbers and numeric strings are accepted.
        interval: Reference interval for the analyte.
        missing: Status returned when the value is absent or unparseable.

    Returns:
        Status.LOW below the interval, Status.HIGH above it, Status.NORMAL
        within it (bounds included), or ``missing``.
    """
    number = parse_value(value)
    if number is None:
        return missing
    if number < interval.low:
        return Status.LOW
    if number > interval.high:
        return Status.HIGH
    return Status.NORMAL
