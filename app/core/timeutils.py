"""
Timestamp helpers.

All stored timestamps are naive UTC so comparisons behave the same on
SQLite and PostgreSQL.
"""
from datetime import datetime, timezone
from typing import Optional

from dateutil.relativedelta import relativedelta


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def from_unix(timestamp: Optional[int]) -> Optional[datetime]:
    """Convert a Stripe unix timestamp to naive UTC."""
    if not timestamp:
        return None
    return datetime.fromtimestamp(int(timestamp), tz=timezone.utc).replace(tzinfo=None)


def one_month_from(start: datetime) -> datetime:
    """Fallback paid term when the provider period end is unknown."""
    return start + relativedelta(months=1)


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a client-supplied datetime; naive values are taken as UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
