"""Datetime parsing helpers for mapped form answers."""

from __future__ import annotations

import re
from datetime import datetime, timezone

DATETIME_FORMATS: list[str] = [
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y/%m/%d %H:%M",
    "%d.%m.%Y %H:%M",
    "%m/%d/%Y %H:%M",
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%d.%m.%Y",
    "%m/%d/%Y",
]

DATE_ONLY_FORMATS = {"%Y-%m-%d", "%Y/%m/%d", "%d.%m.%Y", "%m/%d/%Y"}


def parse_datetime_value(raw_value: str) -> datetime | None:
    """
    Parse a submitted date/datetime into an aware UTC datetime.

    Date-only values are pinned to 12:00 UTC so they land on the same
    calendar day in every awork user's timezone. Naive datetimes are UTC.
    """
    value = (raw_value or "").strip()
    if not value:
        return None

    # Epoch timestamps (seconds or milliseconds)
    if re.fullmatch(r"\d{10,13}", value):
        ts = int(value)
        if len(value) == 13:
            ts = ts / 1000
        return datetime.fromtimestamp(ts, tz=timezone.utc)

    if re.fullmatch(r"\d{4}-\d{2}-\d{2}", value):
        try:
            return datetime.strptime(value, "%Y-%m-%d").replace(hour=12, tzinfo=timezone.utc)
        except ValueError:
            return None

    # ISO 8601 timestamps
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    except ValueError:
        pass

    for fmt in DATETIME_FORMATS:
        try:
            dt = datetime.strptime(value, fmt)
        except ValueError:
            continue
        if fmt in DATE_ONLY_FORMATS:
            dt = dt.replace(hour=12, minute=0, second=0)
        return dt.replace(tzinfo=timezone.utc)

    return None


def to_awork_datetime(value: datetime) -> str:
    """ISO 8601 in UTC with a Z suffix."""
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
