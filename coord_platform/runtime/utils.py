"""
Utility functions shared by the persistence and service layers.
"""

import uuid
from datetime import datetime, timezone

# Fixed-width UTC format: lexicographic order equals chronological order,
# which the overlap and status queries rely on.
STORAGE_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def new_id() -> str:
    """Return a fresh entity id."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_storage(value: datetime) -> str:
    """Serialise a datetime for storage."""
    return ensure_utc(value).strftime(STORAGE_FORMAT)


def from_storage(value: str | datetime | None) -> datetime | None:
    """Parse a stored timestamp back into an aware UTC datetime."""
    if value is None or isinstance(value, datetime):
        return ensure_utc(value) if value is not None else None
    return datetime.strptime(value, STORAGE_FORMAT).replace(tzinfo=timezone.utc)
