"""UTC instant helpers shared by the stores, the API and the client.

Instants are kept as timezone-aware UTC datetimes in memory and as
fixed-width ISO-8601 text in SQLite, so that string comparison in SQL
orders them chronologically.
"""

from __future__ import annotations

from datetime import datetime, timezone

_STORAGE_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Convert to UTC; naive datetimes are taken to be UTC already."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_storage(dt: datetime) -> str:
    return ensure_utc(dt).strftime(_STORAGE_FORMAT)


def from_storage(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.strptime(value, _STORAGE_FORMAT).replace(tzinfo=timezone.utc)


def parse_iso(value: str) -> datetime:
    """Parse an ISO-8601 timestamp (a trailing "Z" is accepted).

    Raises ValueError on malformed input.
    """
    if not isinstance(value, str) or not value:
        raise ValueError(f"Not an ISO-8601 timestamp: {value!r}")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


def to_iso(dt: datetime | None) -> str | None:
    """Render like JavaScript's toISOString(): millisecond precision, "Z"."""
    if dt is None:
        return None
    dt = ensure_utc(dt)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"
