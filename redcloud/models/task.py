"""Tasks and the projects that group them."""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Column, ForeignKey, Text
from sqlalchemy.orm import relationship

from ..db.session import Base

TASK_STATUSES = ("todo", "in_progress", "completed", "cancelled")
TASK_PRIORITIES = ("low", "medium", "high", "urgent")


def _uuid() -> str:
    return str(uuid4())


class Project(Base):
    __tablename__ = "projects"

    id = Column(Text, primary_key=True, default=_uuid)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    color = Column(Text, nullable=True)
    creator_id = Column(Text, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    organization_id = Column(Text, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    tasks = relationship("Task", back_populates="project", cascade="all, delete-orphan", passive_deletes=True)


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Text, primary_key=True, default=_uuid)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default="todo")
    priority = Column(Text, nullable=False, default="medium")
    assignee_id = Column(Text, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    project_id = Column(Text, ForeignKey("projects.id", ondelete="CASCADE"), nullable=True)
    # owner of tasks kept outside any workspace
    creator_id = Column(Text, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    organization_id = Column(Text, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True)
    due_date = Column(Text, nullable=True)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    assignee = relationship("User", foreign_keys=[assignee_id])
    project = relationship("Project", back_populates="tasks")


__all__ = ["Project", "Task", "TASK_STATUSES", "TASK_PRIORITIES"]
