from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, HttpUrl, field_validator

from .auth import normalize_email

OrganizationRole = Literal["owner", "admin", "member"]
InvitationStatus = Literal["pending", "accepted", "rejected", "expired"]


def _check_org_name(value: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValueError("Organization name is required")
    if len(cleaned) > 100:
        raise ValueError("Organization name must be 100 characters or less")
    return cleaned


class OrganizationCreate(BaseModel):
    name: str
    slug: Optional[str] = Field(default=None, min_length=1, max_length=50)
    logo: Optional[HttpUrl] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _check_org_name(value)


class OrganizationUpdate(BaseModel):
    name: Optional[str] = None
    slug: Optional[str] = Field(default=None, min_length=1, max_length=50)
    logo: Optional[HttpUrl] = None
    metadata: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else _check_org_name(value)


class InviteMember(BaseModel):
    email: str
    role: OrganizationRole = "member"
    organization_id: Optional[str] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        try:
            return normalize_email(value)
        except ValueError as exc:
            raise ValueError("Invalid email address") from exc


class UpdateMemberRole(BaseModel):
    member_id_or_email: str = Field(..., min_length=1)
    role: OrganizationRole
    organization_id: Optional[str] = None


class SetActiveOrganization(BaseModel):
    organization_id: Optional[str] = None


class MemberOut(BaseModel):
    id: str
    organization_id: str
    user_id: str
    role: OrganizationRole
    created_at: str
    email: Optional[str] = None
    name: Optional[str] = None


class InvitationOut(BaseModel):
    id: str
    organization_id: str
    email: str
    role: OrganizationRole
    status: InvitationStatus
    expires_at: str
    inviter_id: str

    model_config = {"from_attributes": True}


class OrganizationOut(BaseModel):
    id: str
    name: str
    slug: str
    logo: Optional[str] = None
    metadata: Optional[str] = None
    created_at: str
    member_count: int = 0


class OrganizationDetail(OrganizationOut):
    members: List[MemberOut] = Field(default_factory=list)
    invitations: List[InvitationOut] = Field(default_factory=list)
