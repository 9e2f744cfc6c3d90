"""Identity tables: users, linked provider accounts, sessions and verifications."""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Boolean, Column, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from ..db.session import Base


def _uuid() -> str:
    return str(uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(Text, primary_key=True, default=_uuid)
    name = Column(Text, nullable=True)
    email = Column(Text, nullable=False, unique=True, index=True)
    email_verified = Column(Boolean, nullable=False, default=False)
    image = Column(Text, nullable=True)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    accounts = relationship("Account", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    sessions = relationship("AuthSession", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    memberships = relationship("Member", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)

    @property
    def display_name(self) -> str:
        return self.name or self.email


class Account(Base):
    """A social provider identity linked to a user."""

    __tablename__ = "accounts"
    __table_args__ = (UniqueConstraint("provider_id", "account_id", name="account_provider_uq"),)

    id = Column(Text, primary_key=True, default=_uuid)
    provider_id = Column(Text, nullable=False)
    account_id = Column(Text, nullable=False)
    user_id = Column(Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    access_token = Column(Text, nullable=True)
    scope = Column(Text, nullable=True)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    user = relationship("User", back_populates="accounts")


class AuthSession(Base):
    __tablename__ = "sessions"

    id = Column(Text, primary_key=True, default=_uuid)
    token = Column(Text, nullable=False, unique=True, index=True)
    user_id = Column(Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    expires_at = Column(Text, nullable=False)
    active_organization_id = Column(Text, nullable=True)
    ip_address = Column(Text, nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    user = relationship("User", back_populates="sessions")


class Verification(Base):
    """Short lived secrets: sign-in codes and account deletion tokens."""

    __tablename__ = "verifications"

    id = Column(Text, primary_key=True, default=_uuid)
    identifier = Column(Text, nullable=False, index=True)
    value = Column(Text, nullable=False)
    expires_at = Column(Text, nullable=False)
    attempts = Column(Integer, nullable=False, default=0)
    created_at = Column(Text, nullable=False)


__all__ = ["User", "Account", "AuthSession", "Verification"]
