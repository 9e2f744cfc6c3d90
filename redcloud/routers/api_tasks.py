from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..crud.tasks import (
    bulk_delete_tasks,
    create_project,
    create_task,
    delete_task,
    get_task,
    list_projects,
    list_tasks,
    update_task,
)
from ..db.session import get_db
from ..deps.auth import AuthContext, require_auth
from ..schemas.common import ActionResponse, check_uuid
from ..schemas.task import (
    BulkDeleteTasks,
    ProjectCreate,
    ProjectOut,
    TaskCreate,
    TaskOut,
    TaskPage,
    TaskQuery,
    TaskUpdate,
)
from ..services.realtime import REALTIME_KEYS, trigger_realtime_update

router = APIRouter(prefix="/api/v1", tags=["tasks"])


def task_query_params(
    search: Optional[str] = None,
    status: List[str] = Query(default=[]),
    priority: List[str] = Query(default=[]),
    sort: str = "title",
    desc: bool = False,
    page_index: int = 0,
    page_size: int = 10,
) -> TaskQuery:
    try:
        return TaskQuery(
            search=search,
            status=status,
            priority=priority,
            sort=sort,
            desc=desc,
            page_index=page_index,
            page_size=page_size,
        )
    except ValidationError as exc:
        raise RequestValidationError(exc.errors()) from exc


def _task_id_or_404(task_id: str) -> str:
    try:
        return check_uuid(task_id, "Invalid task ID")
    except ValueError as exc:
        raise HTTPException(status_code=404, detail="Task not found") from exc


def _plural_tasks(count: int) -> str:
    return f"{count} task{'' if count == 1 else 's'}"


@router.get("/tasks", response_model=TaskPage)
def api_list_tasks(
    query: TaskQuery = Depends(task_query_params),
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    page = list_tasks(db, auth.task_scope(), query)
    return TaskPage(**{**page, "items": [TaskOut.model_validate(task) for task in page["items"]]})


@router.post("/tasks", response_model=ActionResponse[TaskOut], status_code=201)
def api_create_task(payload: TaskCreate, auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    try:
        task = create_task(db, auth.task_scope(), payload.model_dump(exclude_unset=True))
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    trigger_realtime_update(REALTIME_KEYS.TASKS)
    return ActionResponse[TaskOut](message="Task created successfully!", data=TaskOut.model_validate(task))


@router.post("/tasks/bulk-delete", response_model=ActionResponse[None])
def api_bulk_delete_tasks(
    payload: BulkDeleteTasks, auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)
):
    deleted = bulk_delete_tasks(db, auth.task_scope(), payload.task_ids)
    trigger_realtime_update(REALTIME_KEYS.TASKS)
    return ActionResponse[None](message=f"{_plural_tasks(deleted)} deleted successfully")


@router.get("/tasks/{task_id}", response_model=TaskOut)
def api_get_task(task_id: str, auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    task = get_task(db, auth.task_scope(), _task_id_or_404(task_id))
    if not task:
        raise HTTPException(404, "Task not found")
    return TaskOut.model_validate(task)


@router.patch("/tasks/{task_id}", response_model=ActionResponse[TaskOut])
def api_update_task(
    task_id: str, payload: TaskUpdate, auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)
):
    scope = auth.task_scope()
    task = get_task(db, scope, _task_id_or_404(task_id))
    if not task:
        raise HTTPException(404, "Task not found")
    try:
        updated = update_task(db, scope, task, payload.model_dump(exclude_unset=True))
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    trigger_realtime_update(REALTIME_KEYS.TASKS)
    return ActionResponse[TaskOut](message="Task updated successfully!", data=TaskOut.model_validate(updated))


@router.delete("/tasks/{task_id}", response_model=ActionResponse[None])
def api_delete_task(task_id: str, auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    task = get_task(db, auth.task_scope(), _task_id_or_404(task_id))
    if not task:
        raise HTTPException(404, "Task not found")
    delete_task(db, task)
    trigger_realtime_update(REALTIME_KEYS.TASKS)
    return ActionResponse[None](message="Task deleted successfully")


@router.get("/projects", response_model=list[ProjectOut])
def api_list_projects(auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    return [ProjectOut.model_validate(project) for project in list_projects(db, auth.task_scope())]


@router.post("/projects", response_model=ActionResponse[ProjectOut], status_code=201)
def api_create_project(payload: ProjectCreate, auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    try:
        project = create_project(db, auth.task_scope(), payload.model_dump(exclude_unset=True))
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    trigger_realtime_update(REALTIME_KEYS.TASKS)
    return ActionResponse[ProjectOut](message="Project created successfully!", data=ProjectOut.model_validate(project))
