from __future__ import annotations

import logging
import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from ..core.logging import principal_ctx_var, request_id_ctx_var

logger = logging.getLogger("redcloud.request")

# polled constantly; not worth an access line each
UNLOGGED_PREFIXES = ("/static/", "/metrics", "/health")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag each request with a correlation id and log how it went.

    The caller is resolved inside the endpoint, which runs in a copied context,
    so auth dependencies leave it on ``request.state.principal`` for the access
    line written here.
    """

    def __init__(self, app, header_name: str = "X-Request-ID") -> None:  # type: ignore[override]
        super().__init__(app)
        self.header_name = header_name

    def _fields(self, request: Request, **more) -> dict:
        return {"extra_data": {"method": request.method, "path": request.url.path, **more}}

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(self.header_name) or uuid4().hex
        request.state.request_id = request_id
        request.state.principal = None
        id_token = request_id_ctx_var.set(request_id)
        started = time.perf_counter()
        try:
            try:
                response = await call_next(request)
            except Exception:
                logger.exception("request.failed", extra=self._fields(request))
                raise
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
            response.headers[self.header_name] = request_id
            response.headers.setdefault("X-Response-Time", f"{elapsed_ms:.2f}ms")
            if not request.url.path.startswith(UNLOGGED_PREFIXES):
                principal_token = principal_ctx_var.set(request.state.principal)
                try:
                    logger.info(
                        "request.completed",
                        extra=self._fields(request, status=response.status_code, duration_ms=elapsed_ms),
                    )
                finally:
                    principal_ctx_var.reset(principal_token)
            return response
        finally:
            request_id_ctx_var.reset(id_token)
