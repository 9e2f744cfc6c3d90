"""User rows and the profile fields people edit themselves."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.timeutil import utcnow_iso
from ..models.user import User
from ..services import avatars


def get_user(db: Session, user_id: str) -> User | None:
    return db.get(User, user_id)


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.execute(select(User).where(User.email == email.strip().lower())).scalars().first()


def create_user(db: Session, email: str, *, name: str | None = None, image: str | None = None,
                email_verified: bool = False) -> User:
    now = utcnow_iso()
    user = User(
        email=email.strip().lower(),
        name=(name or "").strip() or None,
        image=image,
        email_verified=email_verified,
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def update_profile(db: Session, user: User, payload: dict) -> User:
    if "name" in payload:
        name = (payload.get("name") or "").strip()
        if not name:
            raise ValueError("Name is required")
        user.name = name
    if "image" in payload:
        image = payload.get("image") or None
        key = avatars.key_from_url(image)
        if key is not None and not avatars.owns_key(user.id, key):
            raise ValueError("You can only use your own uploaded avatar")
        user.image = image
    user.updated_at = utcnow_iso()
    db.commit()
    db.refresh(user)
    return user


def set_avatar(db: Session, user: User, key: str) -> User:
    previous = avatars.key_from_url(user.image)
    user.image = avatars.avatar_url(key)
    user.updated_at = utcnow_iso()
    db.commit()
    db.refresh(user)
    # only ever remove objects under the caller's own prefix
    if previous and previous != key and avatars.owns_key(user.id, previous):
        avatars.delete_avatar(previous)
    return user


def delete_user(db: Session, user: User) -> None:
    user_id = user.id
    db.delete(user)
    db.commit()
    avatars.delete_user_avatars(user_id)


def needs_onboarding(user: User | None) -> bool:
    return bool(user) and not (user.name or "").strip()
