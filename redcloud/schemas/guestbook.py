from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, field_validator


class GuestbookMessageCreate(BaseModel):
    name: str
    message: str
    country: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        cleaned = (value or "").strip()
        if not cleaned:
            raise ValueError("Name is required")
        if len(cleaned) > 100:
            raise ValueError("Name must be 100 characters or less")
        return cleaned

    @field_validator("message")
    @classmethod
    def validate_message(cls, value: str) -> str:
        cleaned = (value or "").strip()
        if not cleaned:
            raise ValueError("Message is required")
        if len(cleaned) > 500:
            raise ValueError("Message must be 500 characters or less")
        return cleaned

    @field_validator("country")
    @classmethod
    def validate_country(cls, value: Optional[str]) -> Optional[str]:
        cleaned = (value or "").strip()
        if len(cleaned) > 100:
            raise ValueError("Country must be 100 characters or less")
        return cleaned or None


class GuestbookMessageOut(BaseModel):
    id: str
    name: str
    message: str
    country: Optional[str] = None
    user_id: Optional[str] = None
    created_at: str

    model_config = {"from_attributes": True}
