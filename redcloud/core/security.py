"""Credentials: emailed one-time codes, opaque tokens and session-bound JWTs.

API clients exchange an emailed code for a JWT pair. Both tokens carry the id
of the database session opened for that sign-in (``sid``), so signing out or
deleting the account invalidates them even before they expire.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Literal

import bcrypt
from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError

from .config import settings

ALGORITHM = "HS256"
ISSUER = settings.APP_NAME
AUDIENCE = f"{settings.APP_NAME}-api"

TokenKind = Literal["access", "refresh"]


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class TokenPayload(BaseModel):
    sub: str
    sid: str | None = None
    typ: TokenKind
    exp: datetime
    iat: datetime
    aud: str
    iss: str


def _lifetime(kind: TokenKind) -> timedelta:
    if kind == "access":
        return timedelta(minutes=settings.JWT_ACCESS_TTL_MIN)
    return timedelta(days=settings.JWT_REFRESH_TTL_DAYS)


def _sign(subject: str, session_id: str | None, kind: TokenKind) -> str:
    issued = datetime.now(tz=timezone.utc)
    claims = {
        "sub": subject,
        "typ": kind,
        "iat": int(issued.timestamp()),
        "exp": int((issued + _lifetime(kind)).timestamp()),
        "aud": AUDIENCE,
        "iss": ISSUER,
        # two pairs minted within the same second must still differ
        "jti": secrets.token_hex(8),
    }
    if session_id:
        claims["sid"] = session_id
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=ALGORITHM)


def issue_token_pair(subject: str, session_id: str | None = None) -> TokenPair:
    return TokenPair(
        access_token=_sign(subject, session_id, "access"),
        refresh_token=_sign(subject, session_id, "refresh"),
        expires_in=int(_lifetime("access").total_seconds()),
    )


def decode_token(token: str, *, verify_type: TokenKind | None = None) -> TokenPayload:
    """Verify signature, audience, issuer and expiry. Raises ``ValueError`` when any check fails."""

    try:
        claims = jwt.decode(token, settings.JWT_SECRET, algorithms=[ALGORITHM], audience=AUDIENCE, issuer=ISSUER)
        payload = TokenPayload.model_validate(claims)
    except (JWTError, ValidationError) as exc:
        raise ValueError("Invalid token") from exc
    if verify_type and payload.typ != verify_type:
        raise ValueError("Invalid token type")
    return payload


# ---- one-time codes and opaque tokens


def generate_otp(length: int | None = None) -> str:
    return "".join(secrets.choice("0123456789") for _ in range(length or settings.OTP_LENGTH))


def generate_token(nbytes: int = 32) -> str:
    return secrets.token_urlsafe(nbytes)


def hash_secret(value: str) -> str:
    """bcrypt hash used for stored one-time codes."""

    return bcrypt.hashpw(value.encode("utf-8"), bcrypt.gensalt(rounds=settings.OTP_HASH_ROUNDS)).decode("utf-8")


def verify_secret(value: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(value.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # not a bcrypt hash at all
        return False
