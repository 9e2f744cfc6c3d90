"""Additive, idempotent schema upgrades run after ``create_all``."""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

# Columns added after the first release. Existing databases gain them in place.
ADDED_COLUMNS: dict[str, dict[str, str]] = {
    "tasks": {
        "organization_id": "TEXT REFERENCES organizations(id) ON DELETE CASCADE",
        "due_date": "TEXT",
        "creator_id": "TEXT REFERENCES users(id) ON DELETE SET NULL",
    },
    "projects": {
        "organization_id": "TEXT REFERENCES organizations(id) ON DELETE CASCADE",
        "color": "TEXT",
        "creator_id": "TEXT REFERENCES users(id) ON DELETE SET NULL",
    },
    "sessions": {
        "active_organization_id": "TEXT",
    },
    "guestbook_messages": {
        "country": "TEXT",
    },
}

INDEXES: tuple[tuple[str, str, tuple[str, ...]], ...] = (
    ("tasks", "task_status_idx", ("status",)),
    ("tasks", "task_assignee_idx", ("assignee_id",)),
    ("tasks", "task_created_at_idx", ("created_at",)),
    ("tasks", "task_org_idx", ("organization_id",)),
    ("projects", "project_org_idx", ("organization_id",)),
    ("guestbook_messages", "guestbook_created_at_idx", ("created_at",)),
)


def _column_names(engine: Engine, table: str) -> set[str]:
    inspector = inspect(engine)
    if not inspector.has_table(table):
        return set()
    return {column["name"] for column in inspector.get_columns(table)}


def _add_column(engine: Engine, table: str, col_def: str) -> None:
    with engine.begin() as conn:
        conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {col_def}"))


def _index_names(engine: Engine, table: str) -> set[str]:
    return {index["name"] for index in inspect(engine).get_indexes(table)}


def _create_index_if_not_exists(engine: Engine, table: str, name: str, cols: Iterable[str], unique: bool = False) -> None:
    cols_sql = ", ".join(cols)
    unique_sql = "UNIQUE " if unique else ""
    with engine.begin() as conn:
        conn.execute(text(f"CREATE {unique_sql}INDEX IF NOT EXISTS {name} ON {table} ({cols_sql})"))


def run_migrations(engine: Engine) -> list[str]:
    """Bring an existing schema up to date. Returns the applied steps."""

    applied: list[str] = []
    for table, needed in ADDED_COLUMNS.items():
        existing = _column_names(engine, table)
        if not existing:
            # absent tables are created fresh by create_all
            continue
        for name, dtype in needed.items():
            if name not in existing:
                _add_column(engine, table, f"{name} {dtype}")
                applied.append(f"add_column:{table}.{name}")

    for table, name, cols in INDEXES:
        if not _column_names(engine, table) or name in _index_names(engine, table):
            continue
        _create_index_if_not_exists(engine, table, name, cols)
        applied.append(f"index:{name}")

    if applied:
        logger.info("schema.migrated", extra={"extra_data": {"steps": applied}})
    return applied
