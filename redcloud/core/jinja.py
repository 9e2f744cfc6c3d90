"""Jinja2 environment with the formatting filters the pages rely on."""

from __future__ import annotations

from datetime import datetime
from functools import lru_cache
from typing import Any

from fastapi.templating import Jinja2Templates

from .config import settings
from .timeutil import parse_iso, utcnow

MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def _to_dt(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return parse_iso(value)
        except ValueError:
            return None
    return None


def fmt_dt(value: Any, fmt: str = "%Y-%m-%d %H:%M UTC") -> str:
    dt = _to_dt(value)
    return dt.strftime(fmt) if dt else ""


def fmt_date(value: Any, empty: str = "No due date") -> str:
    """``Mon D, YYYY`` the way the task table shows due dates."""

    dt = _to_dt(value)
    if not dt:
        return empty
    return f"{MONTHS[dt.month - 1]} {dt.day}, {dt.year}"


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'} ago"


def fmt_relative(value: Any, now: datetime | None = None) -> str:
    """Human friendly age of a guestbook message."""

    dt = _to_dt(value)
    if not dt:
        return ""
    current = now or utcnow()
    seconds = int((current - dt).total_seconds())
    if seconds < 60:
        return "just now"
    minutes = seconds // 60
    if minutes < 60:
        return _plural(minutes, "minute")
    hours = minutes // 60
    if hours < 24:
        return _plural(hours, "hour")
    days = hours // 24
    if days < 7:
        return _plural(days, "day")
    return fmt_date(dt, empty="")


@lru_cache(maxsize=1)
def get_templates() -> Jinja2Templates:
    templates = Jinja2Templates(directory=str(settings.templates_dir))
    env = templates.env
    env.filters["fmt_dt"] = fmt_dt
    env.filters["fmt_date"] = fmt_date
    env.filters["fmt_relative"] = fmt_relative
    env.globals["app_name"] = settings.APP_NAME
    return templates
