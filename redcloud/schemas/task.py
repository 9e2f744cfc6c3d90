"""Pydantic schemas for task and project payloads."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from .common import blank_to_none, check_iso_datetime, check_uuid

TaskStatus = Literal["todo", "in_progress", "completed", "cancelled"]
TaskPriority = Literal["low", "medium", "high", "urgent"]
SortColumn = Literal["title", "status", "priority", "assignee", "project", "due_date", "created_at"]

PAGE_SIZES = (5, 10, 25, 50)


def _check_title(value: str) -> str:
    if not value or not value.strip():
        raise ValueError("Title is required")
    if len(value) > 255:
        raise ValueError("Title must be 255 characters or less")
    return value


def _check_description(value: Optional[str]) -> Optional[str]:
    if value is not None and len(value) > 1000:
        raise ValueError("Description must be 1000 characters or less")
    return value


class TaskCreate(BaseModel):
    title: str
    description: Optional[str] = None
    status: TaskStatus = "todo"
    priority: TaskPriority = "medium"
    assignee_id: Optional[str] = None
    project_id: Optional[str] = None
    due_date: Optional[str] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, value: str) -> str:
        return _check_title(value)

    @field_validator("description")
    @classmethod
    def validate_description(cls, value: Optional[str]) -> Optional[str]:
        return _check_description(value)

    @field_validator("assignee_id", "project_id", "due_date", mode="before")
    @classmethod
    def empty_means_unset(cls, value: object) -> object:
        return blank_to_none(value)

    @field_validator("assignee_id")
    @classmethod
    def validate_assignee(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else check_uuid(value, "Invalid assignee ID")

    @field_validator("project_id")
    @classmethod
    def validate_project(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else check_uuid(value, "Invalid project ID")

    @field_validator("due_date")
    @classmethod
    def validate_due_date(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else check_iso_datetime(value, "Invalid due date format")


class TaskUpdate(BaseModel):
    """Partial update. An empty string clears ``due_date``, ``assignee_id`` or ``project_id``."""

    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assignee_id: Optional[str] = None
    project_id: Optional[str] = None
    due_date: Optional[str] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else _check_title(value)

    @field_validator("description")
    @classmethod
    def validate_description(cls, value: Optional[str]) -> Optional[str]:
        return _check_description(value)

    @field_validator("assignee_id")
    @classmethod
    def validate_assignee(cls, value: Optional[str]) -> Optional[str]:
        if not value:
            return value
        return check_uuid(value, "Invalid assignee ID")

    @field_validator("project_id")
    @classmethod
    def validate_project(cls, value: Optional[str]) -> Optional[str]:
        if not value:
            return value
        return check_uuid(value, "Invalid project ID")

    @field_validator("due_date")
    @classmethod
    def validate_due_date(cls, value: Optional[str]) -> Optional[str]:
        if not value:
            return value
        return check_iso_datetime(value, "Invalid due date format")


class BulkDeleteTasks(BaseModel):
    task_ids: List[str]

    @field_validator("task_ids")
    @classmethod
    def validate_ids(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("At least one task ID is required")
        return [check_uuid(item, "Invalid task ID") for item in value]


class TaskQuery(BaseModel):
    search: Optional[str] = None
    status: List[TaskStatus] = Field(default_factory=list)
    priority: List[TaskPriority] = Field(default_factory=list)
    sort: SortColumn = "title"
    desc: bool = False
    page_index: int = Field(default=0, ge=0)
    page_size: int = 10

    @field_validator("page_size")
    @classmethod
    def validate_page_size(cls, value: int) -> int:
        if value not in PAGE_SIZES:
            raise ValueError(f"Page size must be one of {', '.join(str(size) for size in PAGE_SIZES)}")
        return value


class AssigneeOut(BaseModel):
    id: str
    name: Optional[str] = None
    email: str

    model_config = {"from_attributes": True}


class ProjectRef(BaseModel):
    id: str
    name: str
    color: Optional[str] = None

    model_config = {"from_attributes": True}


class TaskOut(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    status: TaskStatus
    priority: TaskPriority
    assignee_id: Optional[str] = None
    project_id: Optional[str] = None
    organization_id: Optional[str] = None
    due_date: Optional[str] = None
    created_at: str
    updated_at: str
    assignee: Optional[AssigneeOut] = None
    project: Optional[ProjectRef] = None

    model_config = {"from_attributes": True}


class TaskPage(BaseModel):
    items: List[TaskOut]
    total: int
    page_index: int
    page_size: int
    page_count: int
    can_previous: bool
    can_next: bool


class ProjectCreate(BaseModel):
    name: str
    description: Optional[str] = None
    color: Optional[str] = Field(default=None, pattern=r"^#[0-9A-Fa-f]{6}$")

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("Project name is required")
        if len(value) > 100:
            raise ValueError("Project name must be 100 characters or less")
        return value


class ProjectOut(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    color: Optional[str] = None
    organization_id: Optional[str] = None
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}
