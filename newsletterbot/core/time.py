"""Time helpers shared by the fetchers and the aggregation pipeline."""

from datetime import datetime, timezone
from typing import Optional


def get_current_utc_time() -> datetime:
    """Get current time in UTC."""
    return datetime.now(timezone.utc)


def normalize_timezone(dt: datetime, target_tz: timezone = timezone.utc) -> datetime:
    """
    Normalize datetime to target timezone.

    Naive datetimes are assumed to be UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(target_tz)


def month_key(dt: datetime) -> str:
    """Calendar month bucket used by the monthly rate limiter, e.g. '2025-09'."""
    dt = normalize_timezone(dt)
    return f"{dt.year:04d}-{dt.month:02d}"


def isoformat_utc(dt: Optional[datetime] = None) -> str:
    """ISO-8601 timestamp in UTC; defaults to now."""
    return normalize_timezone(dt or get_current_utc_time()).isoformat()
