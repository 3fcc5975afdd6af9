"""
UTC time helpers.

SQLite hands timezone-aware columns back as naive datetimes, PostgreSQL
returns them aware. Everything stored is UTC, so naive values are tagged
as UTC before comparison.
"""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
