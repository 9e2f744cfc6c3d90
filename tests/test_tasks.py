"""Task storage: scoping, filtering, sorting and pagination."""

import pytest
from pydantic import ValidationError

from redcloud.crud.tasks import (
    TaskScope,
    bulk_delete_tasks,
    create_project,
    create_task,
    get_task,
    list_tasks,
    update_task,
)
from redcloud.crud.users import create_user
from redcloud.models.organization import Organization
from redcloud.schemas.task import BulkDeleteTasks, TaskCreate, TaskQuery, TaskUpdate


@pytest.fixture()
def owner(db_session):
    return create_user(db_session, "owner@example.com", name="Olivia")


@pytest.fixture()
def scope(owner):
    return TaskScope(user_id=owner.id)


def _titles(page):
    return [task.title for task in page["items"]]


def test_create_task_applies_defaults_and_trims(db_session, scope):
    task = create_task(db_session, scope, {"title": "  Write report  ", "description": "   "})

    assert task.title == "Write report"
    assert task.description is None
    assert task.status == "todo"
    assert task.priority == "medium"
    assert task.organization_id is None
    assert task.creator_id == scope.user_id
    assert task.assignee is None and task.project is None


def test_create_task_rejects_unknown_project_and_assignee(db_session, scope):
    with pytest.raises(ValueError, match="Project not found"):
        create_task(db_session, scope, {"title": "x", "project_id": "7b0ac3bb-3c3e-4f61-a7f7-6a1c1f1b2c3d"})
    with pytest.raises(ValueError, match="Assignee not found"):
        create_task(db_session, scope, {"title": "x", "assignee_id": "7b0ac3bb-3c3e-4f61-a7f7-6a1c1f1b2c3d"})


def test_default_listing_sorts_by_title_and_paginates(db_session, scope):
    for title in ["delta", "Alpha", "charlie", "Bravo", "echo", "foxtrot"]:
        create_task(db_session, scope, {"title": title})

    page = list_tasks(db_session, scope, TaskQuery(page_size=5))
    assert _titles(page) == ["Alpha", "Bravo", "charlie", "delta", "echo"]
    assert page["total"] == 6
    assert page["page_count"] == 2
    assert page["can_previous"] is False
    assert page["can_next"] is True

    second = list_tasks(db_session, scope, TaskQuery(page_size=5, page_index=1))
    assert _titles(second) == ["foxtrot"]
    assert second["can_previous"] is True
    assert second["can_next"] is False


def test_page_index_past_the_end_is_clamped(db_session, scope):
    for title in ["a", "b", "c"]:
        create_task(db_session, scope, {"title": title})

    page = list_tasks(db_session, scope, TaskQuery(page_size=5, page_index=9))
    assert page["page_index"] == 0
    assert _titles(page) == ["a", "b", "c"]


def test_empty_listing_has_one_page(db_session, scope):
    page = list_tasks(db_session, scope)
    assert page["items"] == []
    assert page["total"] == 0
    assert page["page_count"] == 1
    assert not page["can_next"]


def test_search_matches_title_or_description_case_insensitively(db_session, scope):
    create_task(db_session, scope, {"title": "Fix login bug"})
    create_task(db_session, scope, {"title": "Plan sprint", "description": "Include the LOGIN revamp"})
    create_task(db_session, scope, {"title": "Water plants"})
    create_task(db_session, scope, {"title": "100% coverage"})

    assert _titles(list_tasks(db_session, scope, TaskQuery(search="login"))) == ["Fix login bug", "Plan sprint"]
    # LIKE wildcards in the term are matched literally
    assert _titles(list_tasks(db_session, scope, TaskQuery(search="%"))) == ["100% coverage"]


def test_status_and_priority_filters_accept_several_values(db_session, scope):
    create_task(db_session, scope, {"title": "a", "status": "todo", "priority": "low"})
    create_task(db_session, scope, {"title": "b", "status": "in_progress", "priority": "urgent"})
    create_task(db_session, scope, {"title": "c", "status": "completed", "priority": "urgent"})
    create_task(db_session, scope, {"title": "d", "status": "cancelled", "priority": "high"})

    by_status = list_tasks(db_session, scope, TaskQuery(status=["todo", "completed"]))
    assert _titles(by_status) == ["a", "c"]

    combined = list_tasks(db_session, scope, TaskQuery(status=["in_progress", "completed"], priority=["urgent"]))
    assert _titles(combined) == ["b", "c"]


def test_priority_sorts_by_severity_not_alphabetically(db_session, scope):
    for title, priority in [("u", "urgent"), ("l", "low"), ("h", "high"), ("m", "medium")]:
        create_task(db_session, scope, {"title": title, "priority": priority})

    ascending = list_tasks(db_session, scope, TaskQuery(sort="priority"))
    assert [t.priority for t in ascending["items"]] == ["low", "medium", "high", "urgent"]

    descending = list_tasks(db_session, scope, TaskQuery(sort="priority", desc=True))
    assert [t.priority for t in descending["items"]] == ["urgent", "high", "medium", "low"]


def test_status_sort_follows_workflow_order(db_session, scope):
    for title, status in [("x", "cancelled"), ("y", "todo"), ("z", "completed"), ("w", "in_progress")]:
        create_task(db_session, scope, {"title": title, "status": status})

    page = list_tasks(db_session, scope, TaskQuery(sort="status"))
    assert [t.status for t in page["items"]] == ["todo", "in_progress", "completed", "cancelled"]


def test_due_date_sort_puts_missing_dates_last(db_session, scope):
    create_task(db_session, scope, {"title": "none"})
    create_task(db_session, scope, {"title": "later", "due_date": "2030-05-01T00:00:00Z"})
    create_task(db_session, scope, {"title": "sooner", "due_date": "2030-01-15"})

    assert _titles(list_tasks(db_session, scope, TaskQuery(sort="due_date"))) == ["sooner", "later", "none"]
    assert _titles(list_tasks(db_session, scope, TaskQuery(sort="due_date", desc=True))) == ["later", "sooner", "none"]


def test_project_and_assignee_sorting_use_related_names(db_session, scope, owner):
    zed = create_project(db_session, scope, {"name": "Zed"})
    apex = create_project(db_session, scope, {"name": "apex"})
    bob = create_user(db_session, "bob@example.com", name="Bob")

    create_task(db_session, scope, {"title": "one", "project_id": zed.id, "assignee_id": owner.id})
    create_task(db_session, scope, {"title": "two", "project_id": apex.id, "assignee_id": bob.id})
    create_task(db_session, scope, {"title": "three"})

    assert _titles(list_tasks(db_session, scope, TaskQuery(sort="project"))) == ["two", "one", "three"]
    assert _titles(list_tasks(db_session, scope, TaskQuery(sort="assignee"))) == ["two", "one", "three"]


def test_personal_and_workspace_tasks_are_isolated(db_session, owner):
    org = Organization(name="Acme", slug="acme", created_at="2024-01-01T00:00:00.000Z")
    db_session.add(org)
    db_session.commit()
    other = create_user(db_session, "other@example.com", name="Other")

    personal = TaskScope(user_id=owner.id)
    workspace = TaskScope(user_id=owner.id, organization_id=org.id)
    stranger = TaskScope(user_id=other.id)

    mine = create_task(db_session, personal, {"title": "personal"})
    shared = create_task(db_session, workspace, {"title": "shared"})

    assert _titles(list_tasks(db_session, personal)) == ["personal"]
    assert _titles(list_tasks(db_session, workspace)) == ["shared"]
    assert list_tasks(db_session, stranger)["total"] == 0
    assert get_task(db_session, stranger, mine.id) is None
    assert get_task(db_session, personal, shared.id) is None


def test_update_only_touches_provided_fields(db_session, scope):
    project = create_project(db_session, scope, {"name": "Ops", "color": "#ff0000"})
    task = create_task(
        db_session,
        scope,
        {"title": "Deploy", "description": "prod", "project_id": project.id, "due_date": "2030-02-02"},
    )

    updated = update_task(db_session, scope, task, {"status": "in_progress"})
    assert updated.status == "in_progress"
    assert updated.description == "prod"
    assert updated.project.name == "Ops"

    cleared = update_task(db_session, scope, updated, {"due_date": "", "project_id": None})
    assert cleared.due_date is None
    assert cleared.project is None
    assert cleared.title == "Deploy"


def test_bulk_delete_only_removes_tasks_in_scope(db_session, scope):
    a = create_task(db_session, scope, {"title": "a"})
    b = create_task(db_session, scope, {"title": "b"})
    create_task(db_session, scope, {"title": "c"})
    outsider = create_user(db_session, "x@example.com")
    foreign = create_task(db_session, TaskScope(user_id=outsider.id), {"title": "foreign"})

    deleted = bulk_delete_tasks(db_session, scope, [a.id, b.id, foreign.id])

    assert deleted == 2
    assert _titles(list_tasks(db_session, scope)) == ["c"]


def test_task_create_validation_messages():
    with pytest.raises(ValidationError, match="Title is required"):
        TaskCreate(title="   ")
    with pytest.raises(ValidationError, match="Title must be 255 characters or less"):
        TaskCreate(title="x" * 256)
    with pytest.raises(ValidationError, match="Description must be 1000 characters or less"):
        TaskCreate(title="ok", description="d" * 1001)
    with pytest.raises(ValidationError, match="Invalid assignee ID"):
        TaskCreate(title="ok", assignee_id="nope")
    with pytest.raises(ValidationError, match="Invalid project ID"):
        TaskCreate(title="ok", project_id="nope")
    with pytest.raises(ValidationError, match="Invalid due date format"):
        TaskCreate(title="ok", due_date="next tuesday")


def test_blank_optional_ids_mean_unset():
    payload = TaskCreate(title="ok", assignee_id="", project_id="  ", due_date="")
    assert payload.assignee_id is None
    assert payload.project_id is None
    assert payload.due_date is None


def test_task_update_allows_clearing_due_date():
    assert TaskUpdate(due_date="").due_date == ""


def test_bulk_delete_validation():
    with pytest.raises(ValidationError, match="At least one task ID is required"):
        BulkDeleteTasks(task_ids=[])
    with pytest.raises(ValidationError, match="Invalid task ID"):
        BulkDeleteTasks(task_ids=["not-a-uuid"])


def test_query_rejects_unsupported_page_size():
    with pytest.raises(ValidationError):
        TaskQuery(page_size=7)
