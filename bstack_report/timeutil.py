"""
Timestamp helpers.

BrowserStack payloads carry timestamps as ISO-8601 strings (with or without a
trailing ``Z``) and occasionally as epoch milliseconds. Everything is
normalized to UTC.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional

import pandas as pd

DAY_SECONDS = 24 * 60 * 60


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a raw payload value into an aware UTC datetime.

    Args:
        value: ISO-8601 string, epoch milliseconds, datetime, or anything else.

    Returns:
        The parsed datetime, or None if the value is empty or unparseable.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    else:
        text = str(value).strip()
        if not text:
            return None
        # Accepts any ISO-8601 variant (fraction width, "Z", "+0000").
        stamp = pd.to_datetime(text, utc=True, errors="coerce")
        if pd.isna(stamp):
            return None
        parsed = stamp.to_pydatetime()

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_iso_or_empty(value: Any) -> str:
    """Format a raw timestamp as ``YYYY-MM-DDTHH:MM:SS.mmmZ``, or "" if unusable."""
    if not value:
        return ""
    parsed = parse_timestamp(value)
    if parsed is None:
        return ""
    return parsed.strftime("%Y-%m-%dT%H:%M:%S.") + f"{parsed.microsecond // 1000:03d}Z"


def row_timestamps(row: Mapping[str, Any], keys: Iterable[str]) -> List[float]:
    """Collect the parseable timestamps (epoch seconds) among the given row fields."""
    stamps: List[float] = []
    for key in keys:
        value = row.get(key)
        if value is None or str(value) == "":
            continue
        parsed = parse_timestamp(value)
        if parsed is not None:
            stamps.append(parsed.timestamp())
    return stamps


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def cutoff_for_days(days: float, now: Optional[datetime] = None) -> float:
    """Epoch seconds for ``now - days``."""
    now = now or utc_now()
    return now.timestamp() - days * DAY_SECONDS
