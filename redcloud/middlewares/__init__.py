"""ASGI middlewares installed by :func:`redcloud.main.create_app`."""

from .request_id import RequestIdMiddleware
from .security_headers import SecurityHeadersMiddleware

__all__ = ["RequestIdMiddleware", "SecurityHeadersMiddleware"]
