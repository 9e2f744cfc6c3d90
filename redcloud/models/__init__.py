"""Importing this package registers every table with ``Base.metadata``."""

from .guestbook import GuestbookMessage
from .organization import Invitation, Member, Organization
from .task import Project, Task
from .user import Account, AuthSession, User, Verification

__all__ = [
    "Account",
    "AuthSession",
    "GuestbookMessage",
    "Invitation",
    "Member",
    "Organization",
    "Project",
    "Task",
    "User",
    "Verification",
]
