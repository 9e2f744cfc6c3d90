from __future__ import annotations

from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..crud import organizations as orgs
from ..db.session import get_db
from ..deps.auth import AuthContext, require_auth
from ..models.organization import Member, Organization
from ..schemas.common import ActionResponse
from ..schemas.organization import (
    InvitationOut,
    InviteMember,
    MemberOut,
    OrganizationCreate,
    OrganizationDetail,
    OrganizationOut,
    OrganizationUpdate,
    SetActiveOrganization,
    UpdateMemberRole,
)
from ..services.email import EmailDeliveryError
from ..services.realtime import REALTIME_KEYS, trigger_realtime_update

router = APIRouter(prefix="/api/v1/organizations", tags=["organizations"])


def _raise_http(exc: Exception) -> NoReturn:
    if isinstance(exc, PermissionError):
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    if isinstance(exc, LookupError):
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if isinstance(exc, EmailDeliveryError):
        raise HTTPException(status_code=502, detail="Failed to send invitation email") from exc
    raise HTTPException(status_code=422, detail=str(exc)) from exc


ORG_ERRORS = (PermissionError, LookupError, ValueError, EmailDeliveryError)


def _member_to_schema(member: Member) -> MemberOut:
    user = member.user
    return MemberOut(
        id=member.id,
        organization_id=member.organization_id,
        user_id=member.user_id,
        role=member.role,
        created_at=member.created_at,
        email=user.email if user else None,
        name=user.name if user else None,
    )


def _org_to_schema(organization: Organization, *, detail: bool = False) -> OrganizationOut | OrganizationDetail:
    base = OrganizationOut(
        id=organization.id,
        name=organization.name,
        slug=organization.slug,
        logo=organization.logo,
        metadata=organization.metadata_json,
        created_at=organization.created_at,
        member_count=len(organization.members or []),
    )
    if not detail:
        return base
    return OrganizationDetail(
        **base.model_dump(),
        members=[_member_to_schema(member) for member in organization.members],
        invitations=[
            InvitationOut.model_validate(invitation)
            for invitation in organization.invitations
            if invitation.status == "pending"
        ],
    )


def _resolve_org_id(auth: AuthContext, organization_id: str | None) -> str:
    org_id = organization_id or auth.organization_id
    if not org_id:
        raise HTTPException(status_code=422, detail="No active organization")
    return org_id


@router.get("", response_model=list[OrganizationOut])
def api_list_organizations(auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    return [_org_to_schema(organization) for organization in orgs.list_organizations(db, auth.user)]


@router.post("", response_model=ActionResponse[OrganizationOut], status_code=201)
def api_create_organization(
    payload: OrganizationCreate, auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)
):
    try:
        organization = orgs.create_organization(db, auth.user, payload.model_dump(exclude_unset=True), auth.session)
    except ORG_ERRORS as exc:
        _raise_http(exc)
    return ActionResponse[OrganizationOut](message="Organization created", data=_org_to_schema(organization))


@router.post("/active", response_model=ActionResponse[None])
def api_set_active_organization(
    payload: SetActiveOrganization, auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)
):
    try:
        orgs.set_active_organization(db, auth.session, auth.user, payload.organization_id)
    except ORG_ERRORS as exc:
        _raise_http(exc)
    trigger_realtime_update(REALTIME_KEYS.TASKS)
    return ActionResponse[None](message="Active organization updated")


@router.get("/invitations", response_model=list[InvitationOut])
def api_list_my_invitations(auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    return [InvitationOut.model_validate(invitation) for invitation in orgs.list_user_invitations(db, auth.user)]


@router.post("/invitations/{invitation_id}/accept", response_model=ActionResponse[MemberOut])
def api_accept_invitation(invitation_id: str, auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    try:
        member = orgs.accept_invitation(db, invitation_id, auth.user, auth.session)
    except ORG_ERRORS as exc:
        _raise_http(exc)
    return ActionResponse[MemberOut](message="Invitation accepted", data=_member_to_schema(member))


@router.post("/invitations/{invitation_id}/reject", response_model=ActionResponse[InvitationOut])
def api_reject_invitation(invitation_id: str, auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    try:
        invitation = orgs.reject_invitation(db, invitation_id, auth.user)
    except ORG_ERRORS as exc:
        _raise_http(exc)
    return ActionResponse[InvitationOut](message="Invitation rejected", data=InvitationOut.model_validate(invitation))


@router.post("/invitations/{invitation_id}/cancel", response_model=ActionResponse[InvitationOut])
def api_cancel_invitation(invitation_id: str, auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    try:
        invitation = orgs.cancel_invitation(db, invitation_id, auth.user)
    except ORG_ERRORS as exc:
        _raise_http(exc)
    return ActionResponse[InvitationOut](message="Invitation canceled", data=InvitationOut.model_validate(invitation))


@router.post("/invite", response_model=ActionResponse[InvitationOut], status_code=201)
def api_invite_member(payload: InviteMember, auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    org_id = _resolve_org_id(auth, payload.organization_id)
    try:
        invitation = orgs.invite_member(db, auth.user, org_id, payload.email, payload.role)
    except ORG_ERRORS as exc:
        _raise_http(exc)
    return ActionResponse[InvitationOut](message="Invitation sent", data=InvitationOut.model_validate(invitation))


@router.post("/members/role", response_model=ActionResponse[MemberOut])
def api_update_member_role(
    payload: UpdateMemberRole, auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)
):
    org_id = _resolve_org_id(auth, payload.organization_id)
    try:
        member = orgs.update_member_role(db, auth.user, org_id, payload.member_id_or_email, payload.role)
    except ORG_ERRORS as exc:
        _raise_http(exc)
    return ActionResponse[MemberOut](message="Member role updated", data=_member_to_schema(member))


@router.delete("/{organization_id}/members/{member_id_or_email}", response_model=ActionResponse[None])
def api_remove_member(
    organization_id: str,
    member_id_or_email: str,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    try:
        orgs.remove_member(db, auth.user, organization_id, member_id_or_email)
    except ORG_ERRORS as exc:
        _raise_http(exc)
    return ActionResponse[None](message="Member removed")


@router.post("/{organization_id}/leave", response_model=ActionResponse[None])
def api_leave_organization(organization_id: str, auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    try:
        orgs.leave_organization(db, auth.user, organization_id)
    except ORG_ERRORS as exc:
        _raise_http(exc)
    return ActionResponse[None](message="You left the organization")


@router.get("/{organization_id}", response_model=OrganizationDetail)
def api_get_organization(organization_id: str, auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    try:
        organization = orgs.get_full_organization(db, organization_id, auth.user)
    except ORG_ERRORS as exc:
        _raise_http(exc)
    return _org_to_schema(organization, detail=True)


@router.patch("/{organization_id}", response_model=ActionResponse[OrganizationOut])
def api_update_organization(
    organization_id: str,
    payload: OrganizationUpdate,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    try:
        organization = orgs.update_organization(db, organization_id, auth.user, payload.model_dump(exclude_unset=True))
    except ORG_ERRORS as exc:
        _raise_http(exc)
    return ActionResponse[OrganizationOut](message="Organization updated", data=_org_to_schema(organization))


@router.delete("/{organization_id}", response_model=ActionResponse[None])
def api_delete_organization(organization_id: str, auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    try:
        orgs.delete_organization(db, organization_id, auth.user)
    except ORG_ERRORS as exc:
        _raise_http(exc)
    trigger_realtime_update(REALTIME_KEYS.TASKS)
    return ActionResponse[None](message="Organization deleted")
