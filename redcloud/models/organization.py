"""Workspaces, their members and pending invitations."""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Column, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from ..db.session import Base

ROLES = ("owner", "admin", "member")
INVITATION_STATUSES = ("pending", "accepted", "rejected", "expired")


def _uuid() -> str:
    return str(uuid4())


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(Text, primary_key=True, default=_uuid)
    name = Column(Text, nullable=False)
    slug = Column(Text, nullable=False, unique=True, index=True)
    logo = Column(Text, nullable=True)
    metadata_json = Column("metadata", Text, nullable=True)
    created_at = Column(Text, nullable=False)

    members = relationship("Member", back_populates="organization", cascade="all, delete-orphan", passive_deletes=True)
    invitations = relationship(
        "Invitation", back_populates="organization", cascade="all, delete-orphan", passive_deletes=True
    )


class Member(Base):
    __tablename__ = "members"
    __table_args__ = (UniqueConstraint("organization_id", "user_id", name="member_org_user_uq"),)

    id = Column(Text, primary_key=True, default=_uuid)
    organization_id = Column(Text, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(Text, nullable=False, default="member")
    created_at = Column(Text, nullable=False)

    organization = relationship("Organization", back_populates="members")
    user = relationship("User", back_populates="memberships")


class Invitation(Base):
    __tablename__ = "invitations"

    id = Column(Text, primary_key=True, default=_uuid)
    organization_id = Column(Text, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(Text, nullable=False, index=True)
    role = Column(Text, nullable=False, default="member")
    status = Column(Text, nullable=False, default="pending")
    expires_at = Column(Text, nullable=False)
    inviter_id = Column(Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(Text, nullable=False)

    organization = relationship("Organization", back_populates="invitations")
    inviter = relationship("User")


__all__ = ["Organization", "Member", "Invitation", "ROLES", "INVITATION_STATUSES"]
