from __future__ import annotations

import logging
import secrets

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from ..core.security import decode_token, issue_token_pair
from ..db.session import get_db
from ..deps.auth import SESSION_KEY, AuthContext, get_optional_auth, require_auth
from ..schemas.auth import RefreshRequest, SessionOut, SignInEmail, SignInOtp, TokenResponse, UserOut
from ..schemas.common import ActionResponse
from ..services import auth as auth_service
from ..services import oauth
from ..services.email import EmailDeliveryError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])

OAUTH_STATE_KEY = "oauth_state"


def safe_next(target: str | None) -> str:
    # only same-site relative paths
    if not target or not target.startswith("/") or target.startswith("//"):
        return "/"
    return target


def session_out(auth: AuthContext) -> SessionOut:
    return SessionOut(
        user=UserOut.model_validate(auth.user),
        active_organization_id=auth.organization_id,
        expires_at=auth.session.expires_at,
        needs_onboarding=auth.needs_onboarding,
    )


def start_session(request: Request, db: Session, user) -> AuthContext:
    client_host = request.client.host if request.client else None
    session = auth_service.create_session(
        db, user, ip_address=client_host, user_agent=request.headers.get("user-agent")
    )
    request.session[SESSION_KEY] = session.token
    return AuthContext(user=user, session=session, scheme="session")


def send_otp_or_raise(db: Session, email: str) -> None:
    try:
        auth_service.send_sign_in_otp(db, email)
    except EmailDeliveryError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to send verification code") from exc


def verify_otp_or_raise(db: Session, email: str, otp: str):
    try:
        return auth_service.verify_sign_in_otp(db, email, otp)
    except auth_service.AuthenticationError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc


@router.post("/email-otp/send", response_model=ActionResponse[None], summary="Email a sign-in code")
def api_send_otp(payload: SignInEmail, db: Session = Depends(get_db)):
    send_otp_or_raise(db, payload.email)
    return ActionResponse[None](message="Verification code sent")


@router.post("/email-otp/verify", response_model=SessionOut, summary="Sign in with an emailed code")
def api_verify_otp(payload: SignInOtp, request: Request, db: Session = Depends(get_db)):
    user = verify_otp_or_raise(db, payload.email, payload.otp)
    return session_out(start_session(request, db, user))


@router.post("/token", response_model=TokenResponse, summary="Exchange an emailed code for JWTs")
def api_exchange_token(payload: SignInOtp, request: Request, db: Session = Depends(get_db)):
    user = verify_otp_or_raise(db, payload.email, payload.otp)
    client_host = request.client.host if request.client else None
    session = auth_service.create_session(
        db, user, ip_address=client_host, user_agent=request.headers.get("user-agent")
    )
    pair = issue_token_pair(subject=user.id, session_id=session.id)
    return TokenResponse(**pair.model_dump())


@router.post("/refresh", response_model=TokenResponse, summary="Refresh access token")
def api_refresh_token(payload: RefreshRequest, db: Session = Depends(get_db)):
    try:
        claims = decode_token(payload.refresh_token, verify_type="refresh")
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    if not claims.sid or auth_service.get_session(db, session_id=claims.sid) is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session expired")
    pair = issue_token_pair(subject=claims.sub, session_id=claims.sid)
    return TokenResponse(**pair.model_dump())


@router.get("/session", response_model=SessionOut)
def api_get_session(auth: AuthContext = Depends(require_auth)):
    return session_out(auth)


@router.post("/sign-out", response_model=ActionResponse[None])
def api_sign_out(request: Request, auth: AuthContext | None = Depends(get_optional_auth),
                 db: Session = Depends(get_db)):
    if auth is not None:
        auth_service.revoke_session(db, auth.session)
    request.session.clear()
    return ActionResponse[None](message="Signed out")


@router.get("/sign-in/social/{provider}")
def api_social_sign_in(provider: str, request: Request, next: str = "/"):
    state = secrets.token_urlsafe(24)
    try:
        url = oauth.build_authorize_url(provider, state)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except oauth.ProviderNotConfigured as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    request.session[OAUTH_STATE_KEY] = {"state": state, "provider": provider, "next": safe_next(next)}
    return RedirectResponse(url=url, status_code=302)


@router.get("/callback/{provider}")
def api_social_callback(
    provider: str,
    request: Request,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    db: Session = Depends(get_db),
):
    expected = request.session.pop(OAUTH_STATE_KEY, None) or {}
    if error:
        return RedirectResponse(url="/sign-in?error=social", status_code=302)
    if not code or not state or expected.get("provider") != provider or not secrets.compare_digest(
        str(expected.get("state") or ""), state
    ):
        raise HTTPException(status_code=400, detail="Invalid OAuth state")
    try:
        token = oauth.exchange_code(provider, code)
        profile = oauth.fetch_profile(provider, token)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except oauth.OAuthError as exc:
        logger.warning("Social sign-in with %s failed: %s", provider, exc)
        return RedirectResponse(url="/sign-in?error=social", status_code=302)
    user = auth_service.sign_in_with_oauth(db, profile)
    start_session(request, db, user)
    return RedirectResponse(url=expected.get("next") or "/", status_code=302)


@router.post("/delete-user", response_model=ActionResponse[None])
def api_request_account_deletion(auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    try:
        auth_service.request_account_deletion(db, auth.user)
    except EmailDeliveryError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to send confirmation email") from exc
    return ActionResponse[None](message="Check your email to confirm account deletion")


@router.get("/delete-user/callback")
def api_confirm_account_deletion(token: str, request: Request, db: Session = Depends(get_db)):
    try:
        auth_service.confirm_account_deletion(db, token)
    except auth_service.AuthenticationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    request.session.clear()
    return RedirectResponse(url="/", status_code=302)
