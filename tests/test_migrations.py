"""Additive upgrades of databases created by earlier releases."""

from sqlalchemy import inspect, text
from sqlalchemy.pool import StaticPool

from redcloud.db.migrate import run_migrations
from redcloud.db.session import build_engine

LEGACY_SCHEMA = (
    """
    CREATE TABLE projects (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        description TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE tasks (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        description TEXT,
        status TEXT NOT NULL,
        priority TEXT NOT NULL,
        assignee_id TEXT,
        project_id TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "INSERT INTO tasks (id, title, status, priority, created_at, updated_at) "
    "VALUES ('t1', 'kept', 'todo', 'low', '2024-01-01T00:00:00.000Z', '2024-01-01T00:00:00.000Z')",
)


def _legacy_engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    with engine.begin() as conn:
        for statement in LEGACY_SCHEMA:
            conn.execute(text(statement))
    return engine


def test_missing_columns_and_indexes_are_added_once():
    engine = _legacy_engine()

    steps = run_migrations(engine)

    assert steps == [
        "add_column:tasks.organization_id",
        "add_column:tasks.due_date",
        "add_column:tasks.creator_id",
        "add_column:projects.organization_id",
        "add_column:projects.color",
        "add_column:projects.creator_id",
        "index:task_status_idx",
        "index:task_assignee_idx",
        "index:task_created_at_idx",
        "index:task_org_idx",
        "index:project_org_idx",
    ]
    inspector = inspect(engine)
    task_columns = {column["name"] for column in inspector.get_columns("tasks")}
    assert {"organization_id", "due_date", "creator_id"} <= task_columns
    assert {"organization_id", "color", "creator_id"} <= {c["name"] for c in inspector.get_columns("projects")}
    assert {"task_status_idx", "task_assignee_idx", "task_created_at_idx", "task_org_idx"} <= {
        index["name"] for index in inspector.get_indexes("tasks")
    }
    assert "project_org_idx" in {index["name"] for index in inspector.get_indexes("projects")}

    # running again changes nothing and keeps existing rows
    assert run_migrations(engine) == []
    with engine.connect() as conn:
        assert conn.execute(text("SELECT title, organization_id FROM tasks")).all() == [("kept", None)]
    engine.dispose()


def test_tables_that_do_not_exist_yet_are_skipped():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    assert run_migrations(engine) == []
    assert inspect(engine).get_table_names() == []
    engine.dispose()
