from __future__ import annotations

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from ..core.timeutil import utcnow_iso
from ..models.guestbook import GuestbookMessage
from ..models.user import User


def list_messages(db: Session, limit: int = 100, offset: int = 0) -> list[GuestbookMessage]:
    stmt = (
        select(GuestbookMessage)
        .order_by(desc(GuestbookMessage.created_at), desc(GuestbookMessage.id))
        .limit(limit)
        .offset(offset)
    )
    return list(db.execute(stmt).scalars().all())


def get_message(db: Session, message_id: str) -> GuestbookMessage | None:
    return db.get(GuestbookMessage, message_id)


def create_message(db: Session, user: User, payload: dict) -> GuestbookMessage:
    name = (payload.get("name") or "").strip()
    text = (payload.get("message") or "").strip()
    if not name:
        raise ValueError("Name is required")
    if not text:
        raise ValueError("Message is required")
    message = GuestbookMessage(
        name=name,
        message=text,
        country=(payload.get("country") or "").strip() or None,
        user_id=user.id,
        created_at=utcnow_iso(),
    )
    db.add(message)
    db.commit()
    db.refresh(message)
    return message


def can_delete(message: GuestbookMessage, user: User | None) -> bool:
    return bool(user) and message.user_id is not None and message.user_id == user.id


def delete_message(db: Session, message: GuestbookMessage, user: User) -> None:
    if not can_delete(message, user):
        raise PermissionError("You can only delete your own messages")
    db.delete(message)
    db.commit()
