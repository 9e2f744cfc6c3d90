"""Timestamp helpers. Every stored timestamp is ISO-8601 UTC text ending in ``Z``."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def to_iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utcnow_iso() -> str:
    return to_iso(utcnow())


def iso_in(seconds: int) -> str:
    return to_iso(utcnow() + timedelta(seconds=seconds))


def parse_iso(value: str | None) -> datetime | None:
    """Parse stored or user-supplied ISO text into an aware UTC datetime."""

    if not value:
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    dt = datetime.fromisoformat(raw)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def is_expired(expires_at: str | None, *, now: datetime | None = None) -> bool:
    expiry = parse_iso(expires_at)
    if expiry is None:
        return True
    return expiry <= (now or utcnow())
