from __future__ import annotations

import re
from typing import Optional

from pydantic import BaseModel, Field, field_validator

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(value: str) -> str:
    cleaned = (value or "").strip().lower()
    if not EMAIL_RE.match(cleaned):
        raise ValueError("Please enter a valid email address")
    return cleaned


class SignInEmail(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        return normalize_email(value)


class SignInOtp(SignInEmail):
    otp: str

    @field_validator("otp")
    @classmethod
    def validate_otp(cls, value: str) -> str:
        cleaned = (value or "").strip()
        if len(cleaned) != 6 or not cleaned.isdigit():
            raise ValueError("Verification code must be 6 digits")
        return cleaned


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int

    model_config = {
        "json_schema_extra": {
            "example": {
                "access_token": "<jwt>",
                "refresh_token": "<jwt>",
                "token_type": "bearer",
                "expires_in": 900,
            }
        }
    }


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class UserOut(BaseModel):
    id: str
    name: Optional[str] = None
    email: str
    email_verified: bool
    image: Optional[str] = None
    created_at: str

    model_config = {"from_attributes": True}


class SessionOut(BaseModel):
    user: UserOut
    active_organization_id: Optional[str] = None
    expires_at: Optional[str] = None
    needs_onboarding: bool = False


class ProfileUpdate(BaseModel):
    name: str
    image: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        cleaned = (value or "").strip()
        if not cleaned:
            raise ValueError("Name is required")
        if len(cleaned) > 100:
            raise ValueError("Name must be 100 characters or less")
        return cleaned

    @field_validator("image")
    @classmethod
    def validate_image(cls, value: Optional[str]) -> Optional[str]:
        cleaned = (value or "").strip()
        if not cleaned:
            return None
        if not cleaned.startswith(("https://", "http://", "/avatars/")) or len(cleaned) > 2048:
            raise ValueError("Image must be an http(s) URL or an uploaded avatar")
        return cleaned
