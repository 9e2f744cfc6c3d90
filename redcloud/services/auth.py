"""Sign-in flows: email one-time codes, social accounts, sessions and account deletion."""

from __future__ import annotations

import logging

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.security import generate_otp, generate_token, hash_secret, verify_secret
from ..core.timeutil import iso_in, is_expired, utcnow_iso
from ..crud import users as users_crud
from ..models.user import Account, AuthSession, User, Verification
from . import email as mailer
from .oauth import OAuthProfile

logger = logging.getLogger(__name__)

OTP_IDENTIFIER = "sign-in-otp:{email}"
DELETE_IDENTIFIER = "delete-account:{token}"


class AuthenticationError(Exception):
    """The presented credentials were not accepted."""


def _otp_identifier(email: str) -> str:
    return OTP_IDENTIFIER.format(email=email.strip().lower())


def _get_verification(db: Session, identifier: str) -> Verification | None:
    return db.execute(
        select(Verification).where(Verification.identifier == identifier).order_by(Verification.created_at.desc())
    ).scalars().first()


def send_sign_in_otp(db: Session, email: str) -> None:
    """Issue a fresh code for ``email``; any code sent earlier stops working."""

    identifier = _otp_identifier(email)
    otp = generate_otp()
    db.execute(delete(Verification).where(Verification.identifier == identifier))
    db.add(
        Verification(
            identifier=identifier,
            value=hash_secret(otp),
            expires_at=iso_in(settings.OTP_TTL_SECONDS),
            attempts=0,
            created_at=utcnow_iso(),
        )
    )
    db.commit()
    mailer.send_verification_code(email, otp)


def verify_sign_in_otp(db: Session, email: str, otp: str) -> User:
    """Consume a valid code and return the (possibly new) user it belongs to."""

    identifier = _otp_identifier(email)
    record = _get_verification(db, identifier)
    if record is None or is_expired(record.expires_at):
        if record is not None:
            db.delete(record)
            db.commit()
        raise AuthenticationError("Verification code expired or not found")

    if not verify_secret(otp, record.value):
        record.attempts = (record.attempts or 0) + 1
        if record.attempts >= settings.OTP_MAX_ATTEMPTS:
            db.delete(record)
            db.commit()
            raise AuthenticationError("Too many attempts")
        db.commit()
        raise AuthenticationError("Invalid verification code")

    db.delete(record)
    db.commit()

    user = users_crud.get_user_by_email(db, email)
    if user is None:
        user = users_crud.create_user(db, email, email_verified=True)
        logger.info("auth.user_created", extra={"extra_data": {"user_id": user.id, "method": "email-otp"}})
    elif not user.email_verified:
        user.email_verified = True
        user.updated_at = utcnow_iso()
        db.commit()
    return user


def sign_in_with_oauth(db: Session, profile: OAuthProfile) -> User:
    """Link ``profile`` to an existing account or user by email, creating one if needed."""

    now = utcnow_iso()
    account = db.execute(
        select(Account).where(Account.provider_id == profile.provider, Account.account_id == profile.account_id)
    ).scalars().first()
    if account is not None:
        account.access_token = profile.access_token
        account.scope = profile.scope
        account.updated_at = now
        db.commit()
        return account.user

    user = users_crud.get_user_by_email(db, profile.email)
    if user is None:
        user = users_crud.create_user(
            db, profile.email, name=profile.name, image=profile.image, email_verified=True
        )
        logger.info("auth.user_created", extra={"extra_data": {"user_id": user.id, "method": profile.provider}})
    db.add(
        Account(
            provider_id=profile.provider,
            account_id=profile.account_id,
            user_id=user.id,
            access_token=profile.access_token,
            scope=profile.scope,
            created_at=now,
            updated_at=now,
        )
    )
    if not user.name and profile.name:
        user.name = profile.name
    if not user.image and profile.image:
        user.image = profile.image
    user.email_verified = True
    user.updated_at = now
    db.commit()
    db.refresh(user)
    return user


def create_session(db: Session, user: User, *, ip_address: str | None = None,
                   user_agent: str | None = None) -> AuthSession:
    now = utcnow_iso()
    # new sessions start in the workspace the user joined first
    membership = next(iter(sorted(user.memberships, key=lambda m: m.created_at)), None)
    session = AuthSession(
        token=generate_token(),
        user_id=user.id,
        expires_at=iso_in(settings.SESSION_MAX_AGE),
        active_organization_id=membership.organization_id if membership else None,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:255] or None,
        created_at=now,
        updated_at=now,
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    return session


def get_session(db: Session, *, token: str | None = None, session_id: str | None = None) -> AuthSession | None:
    """Look a session up by cookie token or id, dropping it if it has expired."""

    if token:
        stmt = select(AuthSession).where(AuthSession.token == token)
    elif session_id:
        stmt = select(AuthSession).where(AuthSession.id == session_id)
    else:
        return None
    session = db.execute(stmt).scalars().first()
    if session is None:
        return None
    if is_expired(session.expires_at):
        db.delete(session)
        db.commit()
        return None
    return session


def revoke_session(db: Session, session: AuthSession) -> None:
    db.delete(session)
    db.commit()


def request_account_deletion(db: Session, user: User) -> str:
    token = generate_token()
    db.add(
        Verification(
            identifier=DELETE_IDENTIFIER.format(token=token),
            value=user.id,
            expires_at=iso_in(settings.DELETE_ACCOUNT_TOKEN_TTL_SECONDS),
            attempts=0,
            created_at=utcnow_iso(),
        )
    )
    db.commit()
    url = f"{settings.BASE_URL.rstrip('/')}/api/v1/auth/delete-user/callback?token={token}"
    mailer.send_delete_account_confirmation(user.email, url, token)
    return token


def confirm_account_deletion(db: Session, token: str) -> str:
    record = _get_verification(db, DELETE_IDENTIFIER.format(token=token))
    if record is None or is_expired(record.expires_at):
        raise AuthenticationError("Deletion link expired or invalid")
    user_id = record.value
    db.delete(record)
    db.commit()
    user = users_crud.get_user(db, user_id)
    if user is None:
        raise LookupError("User not found")
    users_crud.delete_user(db, user)
    logger.info("auth.user_deleted", extra={"extra_data": {"user_id": user_id}})
    return user_id
