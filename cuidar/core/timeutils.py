"""Timestamp helpers shared by the token and calendar code."""
from __future__ import annotations

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return a timezone-aware UTC timestamp."""

    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC and convert aware ones to UTC.

    SQLite hands back naive values even for ``DateTime(timezone=True)``
    columns, so everything read from storage goes through here.
    """

    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_rfc3339(value: datetime) -> str:
    return as_utc(value).isoformat().replace("+00:00", "Z")
