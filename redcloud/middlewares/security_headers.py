from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# realtime.js talks to /__realtime; templates use a few inline style attributes
CONTENT_SECURITY_POLICY = {
    "default-src": "'self'",
    "connect-src": "'self' ws: wss:",
    "img-src": "'self' data: https:",
    "style-src": "'self' 'unsafe-inline'",
    "base-uri": "'self'",
    "form-action": "'self'",
    "frame-ancestors": "'none'",
    "object-src": "'none'",
}


def build_csp(directives: dict[str, str]) -> str:
    return " ".join(f"{name} {value};" for name, value in directives.items())


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Headers shared by every page, fragment and API response."""

    def __init__(self, app, hsts: bool = True) -> None:  # type: ignore[override]
        super().__init__(app)
        self.headers = {
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "DENY",
            "Referrer-Policy": "strict-origin-when-cross-origin",
            "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
            "Content-Security-Policy": build_csp(CONTENT_SECURITY_POLICY),
        }
        if hsts:
            self.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        for name, value in self.headers.items():
            response.headers.setdefault(name, value)
        return response
