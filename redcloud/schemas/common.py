from __future__ import annotations

from typing import Generic, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel

from ..core.timeutil import parse_iso

T = TypeVar("T")


class ActionResponse(BaseModel, Generic[T]):
    """Result of a mutation: a user-facing message plus the affected record."""

    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


def check_uuid(value: str, message: str) -> str:
    try:
        UUID(str(value))
    except (TypeError, ValueError) as exc:
        raise ValueError(message) from exc
    return str(value)


def blank_to_none(value: object) -> object:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def check_iso_datetime(value: str, message: str) -> str:
    try:
        parsed = parse_iso(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(message) from exc
    if parsed is None:
        raise ValueError(message)
    return value.strip()
