"""Workspace management: organizations, roles, memberships and invitations.

Permission failures raise ``PermissionError``, missing records ``LookupError``
and rule violations ``ValueError``; the routers translate them to 403/404/422.
"""

from __future__ import annotations

import json
import logging
import re

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from ..core.config import settings
from ..core.timeutil import iso_in, is_expired, utcnow_iso
from ..models.organization import Invitation, Member, Organization
from ..models.user import AuthSession, User
from ..services import email as mailer

logger = logging.getLogger(__name__)

MANAGER_ROLES = ("owner", "admin")
_SLUG_STRIP = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    slug = _SLUG_STRIP.sub("-", value.strip().lower()).strip("-")
    return slug[:50].strip("-") or "workspace"


def _slug_taken(db: Session, slug: str, exclude_id: str | None = None) -> bool:
    stmt = select(Organization.id).where(Organization.slug == slug)
    if exclude_id:
        stmt = stmt.where(Organization.id != exclude_id)
    return db.execute(stmt).first() is not None


def _unique_slug(db: Session, base: str) -> str:
    candidate = base
    suffix = 2
    while _slug_taken(db, candidate):
        tail = f"-{suffix}"
        candidate = f"{base[: 50 - len(tail)]}{tail}"
        suffix += 1
    return candidate


def get_organization(db: Session, organization_id: str) -> Organization | None:
    return db.get(Organization, organization_id)


def get_membership(db: Session, organization_id: str, user_id: str) -> Member | None:
    return db.execute(
        select(Member).where(Member.organization_id == organization_id, Member.user_id == user_id)
    ).scalars().first()


def require_member(db: Session, organization_id: str, user: User, roles: tuple[str, ...] | None = None) -> Member:
    if get_organization(db, organization_id) is None:
        raise LookupError("Organization not found")
    member = get_membership(db, organization_id, user.id)
    if member is None:
        raise PermissionError("You are not a member of this organization")
    if roles and member.role not in roles:
        raise PermissionError("You do not have permission to perform this action")
    return member


def count_memberships(db: Session, user_id: str) -> int:
    return db.scalar(select(func.count()).select_from(Member).where(Member.user_id == user_id)) or 0


def count_members(db: Session, organization_id: str) -> int:
    return db.scalar(
        select(func.count()).select_from(Member).where(Member.organization_id == organization_id)
    ) or 0


def create_organization(db: Session, user: User, payload: dict, session: AuthSession | None = None) -> Organization:
    name = (payload.get("name") or "").strip()
    if not name:
        raise ValueError("Organization name is required")
    if count_memberships(db, user.id) >= settings.ORGANIZATION_LIMIT:
        raise ValueError(f"You can belong to at most {settings.ORGANIZATION_LIMIT} organizations")
    requested = (payload.get("slug") or "").strip()
    if requested:
        slug = slugify(requested)
        if _slug_taken(db, slug):
            raise ValueError("Organization slug is already taken")
    else:
        slug = _unique_slug(db, slugify(name))
    now = utcnow_iso()
    logo = payload.get("logo")
    organization = Organization(
        name=name,
        slug=slug,
        logo=str(logo) if logo else None,
        created_at=now,
    )
    db.add(organization)
    db.flush()
    db.add(Member(organization_id=organization.id, user_id=user.id, role="owner", created_at=now))
    if session is not None:
        session.active_organization_id = organization.id
        session.updated_at = now
    db.commit()
    db.refresh(organization)
    logger.info("organization.created", extra={"extra_data": {"organization_id": organization.id}})
    return organization


def list_organizations(db: Session, user: User) -> list[Organization]:
    stmt = (
        select(Organization)
        .join(Member, Member.organization_id == Organization.id)
        .where(Member.user_id == user.id)
        .options(selectinload(Organization.members))
        .order_by(Organization.created_at)
    )
    return list(db.execute(stmt).scalars().all())


def get_full_organization(db: Session, organization_id: str, user: User) -> Organization:
    require_member(db, organization_id, user)
    stmt = (
        select(Organization)
        .where(Organization.id == organization_id)
        .options(
            selectinload(Organization.members).selectinload(Member.user),
            selectinload(Organization.invitations),
        )
    )
    organization = db.execute(stmt).scalars().first()
    _expire_stale_invitations(db, organization.invitations)
    return organization


def update_organization(db: Session, organization_id: str, user: User, payload: dict) -> Organization:
    require_member(db, organization_id, user, MANAGER_ROLES)
    organization = get_organization(db, organization_id)
    if "name" in payload and payload["name"] is not None:
        organization.name = payload["name"].strip()
    if payload.get("slug"):
        slug = slugify(payload["slug"])
        if _slug_taken(db, slug, exclude_id=organization.id):
            raise ValueError("Organization slug is already taken")
        organization.slug = slug
    if "logo" in payload:
        organization.logo = str(payload["logo"]) if payload["logo"] else None
    if "metadata" in payload:
        metadata = payload["metadata"]
        if metadata:
            try:
                json.loads(metadata)
            except ValueError as exc:
                raise ValueError("Metadata must be valid JSON") from exc
        organization.metadata_json = metadata or None
    db.commit()
    db.refresh(organization)
    return organization


def delete_organization(db: Session, organization_id: str, user: User) -> None:
    require_member(db, organization_id, user, ("owner",))
    organization = get_organization(db, organization_id)
    db.execute(
        update(AuthSession)
        .where(AuthSession.active_organization_id == organization_id)
        .values(active_organization_id=None)
    )
    db.delete(organization)
    db.commit()
    logger.info("organization.deleted", extra={"extra_data": {"organization_id": organization_id}})


def set_active_organization(db: Session, session: AuthSession, user: User, organization_id: str | None) -> AuthSession:
    if organization_id:
        require_member(db, organization_id, user)
    session.active_organization_id = organization_id or None
    session.updated_at = utcnow_iso()
    db.commit()
    db.refresh(session)
    return session


def _expire_stale_invitations(db: Session, invitations) -> None:
    changed = False
    for invitation in invitations:
        if invitation.status == "pending" and is_expired(invitation.expires_at):
            invitation.status = "expired"
            changed = True
    if changed:
        db.commit()


def invite_member(db: Session, user: User, organization_id: str, email: str, role: str = "member") -> Invitation:
    inviter = require_member(db, organization_id, user, MANAGER_ROLES)
    if role == "owner" and inviter.role != "owner":
        raise PermissionError("Only owners can invite owners")
    email = email.strip().lower()
    existing_user = db.execute(select(User).where(User.email == email)).scalars().first()
    if existing_user and get_membership(db, organization_id, existing_user.id):
        raise ValueError("User is already a member of this organization")

    pending = db.execute(
        select(Invitation).where(
            Invitation.organization_id == organization_id,
            Invitation.email == email,
            Invitation.status == "pending",
        )
    ).scalars().all()
    _expire_stale_invitations(db, pending)
    if any(invitation.status == "pending" for invitation in pending):
        raise ValueError("User is already invited to this organization")

    if count_members(db, organization_id) >= settings.MEMBERSHIP_LIMIT:
        raise ValueError(f"Organizations are limited to {settings.MEMBERSHIP_LIMIT} members")

    invitation = Invitation(
        organization_id=organization_id,
        email=email,
        role=role,
        status="pending",
        expires_at=iso_in(settings.INVITATION_EXPIRES_SECONDS),
        inviter_id=user.id,
        created_at=utcnow_iso(),
    )
    db.add(invitation)
    db.commit()
    db.refresh(invitation)

    organization = get_organization(db, organization_id)
    mailer.send_workspace_invitation(
        email,
        invitation_url=f"{settings.BASE_URL.rstrip('/')}/accept-invitation/{invitation.id}",
        organization_name=organization.name,
        inviter_name=user.name,
        inviter_email=user.email,
    )
    return invitation


def get_invitation(db: Session, invitation_id: str) -> Invitation:
    invitation = db.get(Invitation, invitation_id)
    if invitation is None:
        raise LookupError("Invitation not found")
    _expire_stale_invitations(db, [invitation])
    return invitation


def list_user_invitations(db: Session, user: User) -> list[Invitation]:
    rows = db.execute(
        select(Invitation).where(Invitation.email == user.email, Invitation.status == "pending")
    ).scalars().all()
    _expire_stale_invitations(db, rows)
    return [invitation for invitation in rows if invitation.status == "pending"]


def _recipient_invitation(db: Session, invitation_id: str, user: User) -> Invitation:
    invitation = get_invitation(db, invitation_id)
    if invitation.email != user.email.lower():
        raise PermissionError("This invitation was sent to a different email address")
    if invitation.status == "expired":
        raise ValueError("Invitation has expired")
    if invitation.status != "pending":
        raise ValueError(f"Invitation is already {invitation.status}")
    return invitation


def accept_invitation(db: Session, invitation_id: str, user: User, session: AuthSession | None = None) -> Member:
    invitation = _recipient_invitation(db, invitation_id, user)
    if count_memberships(db, user.id) >= settings.ORGANIZATION_LIMIT:
        raise ValueError(f"You can belong to at most {settings.ORGANIZATION_LIMIT} organizations")
    member = get_membership(db, invitation.organization_id, user.id)
    if member is None:
        if count_members(db, invitation.organization_id) >= settings.MEMBERSHIP_LIMIT:
            raise ValueError(f"Organizations are limited to {settings.MEMBERSHIP_LIMIT} members")
        member = Member(
            organization_id=invitation.organization_id,
            user_id=user.id,
            role=invitation.role,
            created_at=utcnow_iso(),
        )
        db.add(member)
    invitation.status = "accepted"
    if session is not None:
        session.active_organization_id = invitation.organization_id
        session.updated_at = utcnow_iso()
    db.commit()
    db.refresh(member)
    return member


def reject_invitation(db: Session, invitation_id: str, user: User) -> Invitation:
    invitation = _recipient_invitation(db, invitation_id, user)
    invitation.status = "rejected"
    db.commit()
    db.refresh(invitation)
    return invitation


def cancel_invitation(db: Session, invitation_id: str, user: User) -> Invitation:
    invitation = get_invitation(db, invitation_id)
    require_member(db, invitation.organization_id, user, MANAGER_ROLES)
    if invitation.status != "pending":
        raise ValueError(f"Invitation is already {invitation.status}")
    invitation.status = "rejected"
    db.commit()
    db.refresh(invitation)
    return invitation


def _find_member(db: Session, organization_id: str, member_id_or_email: str) -> Member:
    key = member_id_or_email.strip()
    stmt = select(Member).where(Member.organization_id == organization_id)
    if "@" in key:
        stmt = stmt.join(User, User.id == Member.user_id).where(User.email == key.lower())
    else:
        stmt = stmt.where(Member.id == key)
    member = db.execute(stmt).scalars().first()
    if member is None:
        raise LookupError("Member not found")
    return member


def _owner_count(db: Session, organization_id: str) -> int:
    return db.scalar(
        select(func.count()).select_from(Member).where(
            Member.organization_id == organization_id, Member.role == "owner"
        )
    ) or 0


def update_member_role(db: Session, user: User, organization_id: str, member_id_or_email: str, role: str) -> Member:
    actor = require_member(db, organization_id, user, MANAGER_ROLES)
    member = _find_member(db, organization_id, member_id_or_email)
    if (role == "owner" or member.role == "owner") and actor.role != "owner":
        raise PermissionError("Only owners can change owner roles")
    if member.role == "owner" and role != "owner" and _owner_count(db, organization_id) <= 1:
        raise ValueError("An organization needs at least one owner")
    member.role = role
    db.commit()
    db.refresh(member)
    return member


def remove_member(db: Session, user: User, organization_id: str, member_id_or_email: str) -> None:
    member = _find_member(db, organization_id, member_id_or_email)
    if member.user_id != user.id:
        actor = require_member(db, organization_id, user, MANAGER_ROLES)
        if member.role == "owner" and actor.role != "owner":
            raise PermissionError("Only owners can remove owners")
    if member.role == "owner" and _owner_count(db, organization_id) <= 1:
        raise ValueError("An organization needs at least one owner")
    db.execute(
        update(AuthSession)
        .where(
            AuthSession.user_id == member.user_id,
            AuthSession.active_organization_id == organization_id,
        )
        .values(active_organization_id=None)
    )
    db.delete(member)
    db.commit()


def leave_organization(db: Session, user: User, organization_id: str) -> None:
    member = require_member(db, organization_id, user)
    remove_member(db, user, organization_id, member.id)
