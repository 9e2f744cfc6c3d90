from __future__ import annotations

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security.utils import get_authorization_scheme_param
from sqlalchemy.orm import Session

from ..core.logging import principal_ctx_var
from ..core.security import decode_token
from ..crud.tasks import TaskScope
from ..crud.users import needs_onboarding
from ..db.session import get_db
from ..models.user import AuthSession, User
from ..services.auth import get_session

SESSION_KEY = "session_token"


class AuthContext:
    def __init__(self, *, user: User, session: AuthSession, scheme: str) -> None:
        self.user = user
        self.session = session
        self.scheme = scheme

    @property
    def organization_id(self) -> str | None:
        return self.session.active_organization_id

    @property
    def needs_onboarding(self) -> bool:
        return needs_onboarding(self.user)

    def task_scope(self) -> TaskScope:
        return TaskScope(user_id=self.user.id, organization_id=self.organization_id)


def _unauthorized(detail: str = "Authentication required") -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def _set_principal(request: Request, principal: str) -> None:
    principal_ctx_var.set(principal)
    request.state.principal = principal


def get_optional_auth(
    request: Request,
    db: Session = Depends(get_db),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> AuthContext | None:
    """Resolve the caller from the session cookie or a bearer token."""

    token = request.session.get(SESSION_KEY)
    if token:
        session = get_session(db, token=token)
        if session is not None:
            _set_principal(request, f"user:{session.user_id}")
            return AuthContext(user=session.user, session=session, scheme="session")
        request.session.pop(SESSION_KEY, None)

    if authorization:
        scheme, credentials = get_authorization_scheme_param(authorization)
        if scheme.lower() == "bearer" and credentials:
            try:
                payload = decode_token(credentials, verify_type="access")
            except ValueError as exc:
                raise _unauthorized(str(exc)) from exc
            session = get_session(db, session_id=payload.sid) if payload.sid else None
            if session is None or session.user_id != payload.sub:
                raise _unauthorized("Session expired")
            _set_principal(request, f"jwt:{payload.sub}")
            return AuthContext(user=session.user, session=session, scheme="jwt")
    return None


def require_auth(auth: AuthContext | None = Depends(get_optional_auth)) -> AuthContext:
    if auth is None:
        raise _unauthorized()
    return auth
