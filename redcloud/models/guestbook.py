from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Column, ForeignKey, Text

from ..db.session import Base


class GuestbookMessage(Base):
    __tablename__ = "guestbook_messages"

    id = Column(Text, primary_key=True, default=lambda: str(uuid4()))
    name = Column(Text, nullable=False)
    message = Column(Text, nullable=False)
    country = Column(Text, nullable=True)
    # kept anonymously when the author deletes their account
    user_id = Column(Text, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(Text, nullable=False)


__all__ = ["GuestbookMessage"]
