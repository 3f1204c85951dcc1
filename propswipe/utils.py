# Small shared helpers: ids and UTC-aware timestamps.
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4


def new_id() -> str:
    return uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime read back from the database.

    Some backends (e.g., SQLite) return naive datetimes; stored values are always UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_blank(value: Optional[str]) -> bool:
    return value is None or value.strip() == ""
