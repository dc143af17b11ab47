"""Time helpers.

Pipelines never read the wall clock themselves; the HTTP layer takes one
snapshot per request with :func:`utcnow` and threads it through.
"""

from __future__ import annotations

from datetime import date, datetime, timezone, tzinfo
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Read naive datetimes as UTC so every instant is comparable."""

    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def local_date(value: datetime, tz: Optional[tzinfo] = None) -> date:
    """Calendar day of an instant in ``tz`` (UTC when not given)."""

    return ensure_aware(value).astimezone(tz or timezone.utc).date()
