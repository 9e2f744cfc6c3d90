"""Task and project storage, including the filtered/sorted/paginated listing."""

from __future__ import annotations

import math
from typing import Iterable

from sqlalchemy import and_, case, delete, func, or_, select
from sqlalchemy.orm import Session, aliased, selectinload

from ..core.timeutil import parse_iso, to_iso, utcnow_iso
from ..models.organization import Member
from ..models.task import TASK_PRIORITIES, TASK_STATUSES, Project, Task
from ..models.user import User
from ..schemas.task import TaskQuery

STATUS_RANK = case(
    {status: rank for rank, status in enumerate(TASK_STATUSES)}, value=Task.status, else_=len(TASK_STATUSES)
)
PRIORITY_RANK = case(
    {priority: rank for rank, priority in enumerate(TASK_PRIORITIES)}, value=Task.priority, else_=len(TASK_PRIORITIES)
)


class TaskScope:
    """Which tasks a caller sees: their active workspace, or their personal ones."""

    def __init__(self, *, user_id: str, organization_id: str | None = None) -> None:
        self.user_id = user_id
        self.organization_id = organization_id

    def task_clause(self):
        if self.organization_id:
            return Task.organization_id == self.organization_id
        return and_(Task.organization_id.is_(None), Task.creator_id == self.user_id)

    def project_clause(self):
        if self.organization_id:
            return Project.organization_id == self.organization_id
        return and_(Project.organization_id.is_(None), Project.creator_id == self.user_id)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _normalize_due_date(value: str | None) -> str | None:
    parsed = parse_iso(value) if value else None
    return to_iso(parsed) if parsed else None


def _filtered(stmt, scope: TaskScope, query: TaskQuery):
    stmt = stmt.where(scope.task_clause())
    term = (query.search or "").strip()
    if term:
        pattern = f"%{_escape_like(term)}%"
        stmt = stmt.where(
            or_(
                Task.title.ilike(pattern, escape="\\"),
                Task.description.ilike(pattern, escape="\\"),
            )
        )
    if query.status:
        stmt = stmt.where(Task.status.in_(query.status))
    if query.priority:
        stmt = stmt.where(Task.priority.in_(query.priority))
    return stmt


def list_tasks(db: Session, scope: TaskScope, query: TaskQuery | None = None) -> dict:
    """Return one page of tasks with relations plus the paging metadata."""

    query = query or TaskQuery()
    total = db.scalar(_filtered(select(func.count(Task.id)), scope, query)) or 0
    page_count = max(1, math.ceil(total / query.page_size))
    page_index = min(query.page_index, page_count - 1)

    assignee = aliased(User)
    stmt = _filtered(select(Task), scope, query)
    if query.sort == "assignee":
        stmt = stmt.outerjoin(assignee, Task.assignee_id == assignee.id)
        sort_expr = func.lower(func.coalesce(assignee.name, assignee.email))
    elif query.sort == "project":
        stmt = stmt.outerjoin(Project, Task.project_id == Project.id)
        sort_expr = func.lower(Project.name)
    elif query.sort == "status":
        sort_expr = STATUS_RANK
    elif query.sort == "priority":
        sort_expr = PRIORITY_RANK
    elif query.sort == "due_date":
        sort_expr = Task.due_date
    elif query.sort == "created_at":
        sort_expr = Task.created_at
    else:
        sort_expr = func.lower(Task.title)

    ordering = sort_expr.desc() if query.desc else sort_expr.asc()
    stmt = (
        stmt.options(selectinload(Task.assignee), selectinload(Task.project))
        .order_by(ordering.nulls_last(), Task.created_at.desc(), Task.id)
        .limit(query.page_size)
        .offset(page_index * query.page_size)
    )
    items = db.execute(stmt).scalars().all()
    return {
        "items": items,
        "total": total,
        "page_index": page_index,
        "page_size": query.page_size,
        "page_count": page_count,
        "can_previous": page_index > 0,
        "can_next": page_index < page_count - 1,
    }


def get_task(db: Session, scope: TaskScope, task_id: str) -> Task | None:
    stmt = (
        select(Task)
        .where(Task.id == str(task_id), scope.task_clause())
        .options(selectinload(Task.assignee), selectinload(Task.project))
    )
    return db.execute(stmt).scalars().first()


def list_assignees(db: Session, scope: TaskScope) -> list[User]:
    """People a task in ``scope`` can be assigned to: the workspace members, or just the owner."""

    if scope.organization_id:
        stmt = (
            select(User)
            .join(Member, Member.user_id == User.id)
            .where(Member.organization_id == scope.organization_id)
            .order_by(func.lower(func.coalesce(User.name, User.email)))
        )
        return list(db.execute(stmt).scalars().all())
    user = db.get(User, scope.user_id)
    return [user] if user else []


def _check_assignee(db: Session, assignee_id: str | None) -> str | None:
    if not assignee_id:
        return None
    if db.get(User, assignee_id) is None:
        raise ValueError("Assignee not found")
    return assignee_id


def _check_project(db: Session, scope: TaskScope, project_id: str | None) -> str | None:
    if not project_id:
        return None
    found = db.execute(select(Project.id).where(Project.id == project_id, scope.project_clause())).first()
    if found is None:
        raise ValueError("Project not found")
    return project_id


def create_task(db: Session, scope: TaskScope, payload: dict) -> Task:
    title = (payload.get("title") or "").strip()
    if not title:
        raise ValueError("Title is required")
    now = utcnow_iso()
    task = Task(
        title=title,
        description=(payload.get("description") or "").strip() or None,
        status=payload.get("status") or "todo",
        priority=payload.get("priority") or "medium",
        assignee_id=_check_assignee(db, payload.get("assignee_id")),
        project_id=_check_project(db, scope, payload.get("project_id")),
        organization_id=scope.organization_id,
        creator_id=scope.user_id,
        due_date=_normalize_due_date(payload.get("due_date")),
        created_at=now,
        updated_at=now,
    )
    db.add(task)
    db.commit()
    return get_task(db, scope, task.id)


def update_task(db: Session, scope: TaskScope, task: Task, payload: dict) -> Task:
    """Apply only the fields present in ``payload``."""

    if "title" in payload:
        title = (payload.get("title") or "").strip()
        if not title:
            raise ValueError("Title is required")
        task.title = title
    if "description" in payload:
        task.description = (payload.get("description") or "").strip() or None
    for field in ("status", "priority"):
        if payload.get(field) is not None:
            setattr(task, field, payload[field])
    if "assignee_id" in payload:
        task.assignee_id = _check_assignee(db, payload.get("assignee_id"))
    if "project_id" in payload:
        task.project_id = _check_project(db, scope, payload.get("project_id"))
    if "due_date" in payload:
        # "" clears the due date
        task.due_date = _normalize_due_date(payload.get("due_date"))
    task.updated_at = utcnow_iso()
    db.commit()
    db.expire(task)
    return get_task(db, scope, task.id)


def delete_task(db: Session, task: Task) -> None:
    db.delete(task)
    db.commit()


def bulk_delete_tasks(db: Session, scope: TaskScope, task_ids: Iterable[str]) -> int:
    ids = [str(task_id) for task_id in task_ids]
    result = db.execute(delete(Task).where(Task.id.in_(ids), scope.task_clause()))
    db.commit()
    return result.rowcount or 0


def list_projects(db: Session, scope: TaskScope) -> list[Project]:
    stmt = select(Project).where(scope.project_clause()).order_by(Project.created_at.desc())
    return list(db.execute(stmt).scalars().all())


def create_project(db: Session, scope: TaskScope, payload: dict) -> Project:
    name = (payload.get("name") or "").strip()
    if not name:
        raise ValueError("Project name is required")
    now = utcnow_iso()
    project = Project(
        name=name,
        description=(payload.get("description") or "").strip() or None,
        color=payload.get("color") or None,
        organization_id=scope.organization_id,
        creator_id=scope.user_id,
        created_at=now,
        updated_at=now,
    )
    db.add(project)
    db.commit()
    db.refresh(project)
    return project
