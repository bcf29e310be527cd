"""
keyledger_core.utils
--------------------
Timestamp helpers. All instants are timezone-aware UTC datetimes in memory and
ISO-8601 strings (millisecond precision, ``Z`` suffix) on the wire and on disk.
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    # Date.toISOString() shape; isoformat zero-pads years below 1000
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def now_ts() -> str:
    return to_iso(utcnow())


def parse_ts(value) -> Optional[datetime]:
    """
    Parse an ISO-8601 date or datetime into an aware UTC datetime.

    Returns None for empty or unparseable input instead of raising, callers
    decide whether that is a validation failure.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        if raw[-1] in ("Z", "z"):
            raw = raw[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(raw)
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    try:
        return dt.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        # offset pushes the instant outside datetime's range
        return None
