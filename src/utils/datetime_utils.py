"""Datetime utilities for timezone-aware UTC timestamps.

Usage:
    from src.utils.datetime_utils import utc_now

    # For SQLAlchemy Column defaults
    created_at = Column(DateTime, default=utc_now)
"""

from datetime import date, datetime, timezone
from typing import Optional, Union


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def iso_or_none(value: Optional[Union[date, datetime]]) -> Optional[str]:
    """Format a date or datetime as ISO-8601, passing None through.

    Traceability views render received/expiry dates from lots that may
    never have had them recorded.
    """
    if value is None:
        return None
    return value.isoformat()
