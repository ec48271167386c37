"""Timestamp helpers: global offsets, ms→s conversion, epoch disambiguation.

WHY: WhisperKit segment timings are milliseconds relative to the
recording, shifted by an optional per-archive start offset. Creation
and update dates are bare numbers whose unit (seconds or milliseconds)
and epoch (Unix or Apple's 2001 reference date) depend on the app
version that wrote the archive. Nothing in the file says which.

HOW: offset_ms() folds the structured start offset into milliseconds.
ms_to_seconds() converts a finite millisecond value to seconds.
normalize_epoch() builds all four unit/epoch interpretations, keeps the
ones landing in a plausible calendar window, and picks the one closest
to the current time.

RULES:
- Booleans are never numbers, even though bool subclasses int
- Non-finite values never produce a timing, they produce None
- normalize_epoch() never raises; None means "no confident guess"
- Candidate order is: Unix ms, Unix s, Apple s, Apple ms; ties keep
  that order
"""

from __future__ import annotations

import math
import time
from datetime import datetime, timezone
from typing import Any

from whisper_converter.config import (
    APPLE_EPOCH_OFFSET_MILLISECONDS,
    APPLE_EPOCH_OFFSET_SECONDS,
    PLAUSIBLE_YEAR_MAX,
    PLAUSIBLE_YEAR_MIN,
)


def is_finite_number(value: Any) -> bool:
    """True for int/float values that are finite (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def offset_ms(offset: Any) -> float:
    """Total milliseconds of a ``startTimeOffset`` object.

    Missing components count as zero; a missing or non-object offset is
    zero. Non-numeric components are ignored.
    """
    if not isinstance(offset, dict):
        return 0

    def part(key: str) -> float:
        value = offset.get(key, 0)
        return value if is_finite_number(value) else 0

    return ((part("hours") * 60 + part("minutes")) * 60 + part("seconds")) * 1000 + part("milliseconds")


def ms_to_seconds(value: Any) -> float | None:
    if not is_finite_number(value):
        return None
    return value / 1000


def _coerce_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return float(text)
        except ValueError:
            return None
    if isinstance(value, (int, float)):
        try:
            return float(value)
        except OverflowError:
            return None
    return None


def _utc_year(ms: float) -> int | None:
    try:
        return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).year
    except (OverflowError, OSError, ValueError):
        return None


def epoch_candidates(value: Any) -> list[float]:
    """All positive, finite Unix-millisecond readings of ``value``."""
    numeric = _coerce_number(value)
    if numeric is None or math.isnan(numeric):
        return []
    candidates = [
        numeric,  # Unix milliseconds
        numeric * 1000,  # Unix seconds
        (numeric + APPLE_EPOCH_OFFSET_SECONDS) * 1000,  # Apple reference seconds
        numeric + APPLE_EPOCH_OFFSET_MILLISECONDS,  # Apple reference milliseconds
    ]
    return [ms for ms in candidates if math.isfinite(ms) and ms > 0]


def normalize_epoch(value: Any, now_ms: float | None = None) -> float | None:
    """Resolve an ambiguous numeric timestamp to Unix milliseconds.

    WHY: Different producer versions wrote ``dateCreated`` as Unix
    seconds, Unix milliseconds, or seconds/milliseconds since
    2001-01-01. Output bucketing needs a single calendar instant.

    HOW:
    1. Build the four interpretations as Unix milliseconds
    2. Drop non-finite and non-positive candidates
    3. Keep candidates whose UTC year is within [2000, 2100]; if none
       qualify, keep all candidates
    4. Return the candidate closest to ``now_ms``

    Args:
        value: Number or numeric string from the metadata.
        now_ms: Reference "now" in Unix milliseconds (defaults to the
            wall clock; tests pass a fixed value).

    Returns:
        Unix milliseconds, or None when no candidate exists.
    """
    candidates = epoch_candidates(value)
    if not candidates:
        return None
    if now_ms is None:
        now_ms = time.time() * 1000

    plausible = []
    for ms in candidates:
        year = _utc_year(ms)
        if year is not None and PLAUSIBLE_YEAR_MIN <= year <= PLAUSIBLE_YEAR_MAX:
            plausible.append(ms)
    shortlisted = plausible or candidates

    # min() returns the first of equally distant candidates
    return min(shortlisted, key=lambda ms: abs(now_ms - ms))


def resolve_timestamp(value: Any, now_ms: float | None = None) -> datetime | None:
    """Like normalize_epoch() but as an aware UTC datetime.

    Returns None when there is no candidate or the chosen candidate is
    outside the range ``datetime`` can represent.
    """
    millis = normalize_epoch(value, now_ms=now_ms)
    if millis is None:
        return None
    try:
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None
