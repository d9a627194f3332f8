"""
Datetime utilities for the bridge API services.
"""
from datetime import datetime, timezone
from typing import Optional


def make_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure datetime is timezone-aware (UTC if naive).

    Args:
        dt: A datetime object that may or may not have timezone info

    Returns:
        The same datetime with UTC timezone if it was naive,
        or the original timezone-aware datetime, or None if input was None
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_offset_timestamp(dt: Optional[datetime] = None) -> str:
    """
    Format a UTC timestamp as YYYY-MM-DDTHH:MM:SS+00:00.

    GHL rejects the "Z" suffix (422) and fractional seconds on workflow
    enrollment, so the offset is always written out explicitly.

    Args:
        dt: Datetime to format (default: now). Naive values are taken as UTC.

    Returns:
        Second-precision timestamp with an explicit +00:00 offset
    """
    dt = make_aware(dt) if dt is not None else utc_now()
    dt = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt.strftime("%Y-%m-%dT%H:%M:%S") + "+00:00"
