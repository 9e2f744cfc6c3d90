from __future__ import annotations

from http import HTTPStatus
from typing import Any
from urllib.parse import quote

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException

from .jinja import get_templates

SIGN_IN_PATH = "/sign-in"


class ErrorEnvelope(JSONResponse):
    def __init__(
        self,
        *,
        status_code: int,
        code: str,
        message: str,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        payload: dict[str, Any] = {"code": code, "message": message}
        if details is not None:
            payload["details"] = details
        super().__init__(payload, status_code=status_code, headers=headers)


def _wants_html(request: Request) -> bool:
    accept = (request.headers.get("accept") or "").lower()
    path = request.url.path
    return "text/html" in accept and not path.startswith("/api") and not path.startswith(SIGN_IN_PATH)


def _status_phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_401_UNAUTHORIZED and _wants_html(request):
        target = request.url.path
        if request.url.query:
            target = f"{target}?{request.url.query}"
        target = quote(target, safe="/")
        return RedirectResponse(url=f"{SIGN_IN_PATH}?next={target}", status_code=302)
    if exc.status_code == status.HTTP_404_NOT_FOUND and _wants_html(request):
        return get_templates().TemplateResponse(
            request, "not_found.html", {"path": request.url.path}, status_code=status.HTTP_404_NOT_FOUND
        )
    detail = exc.detail
    message = detail if isinstance(detail, str) else _status_phrase(exc.status_code)
    details = detail if isinstance(detail, dict) else None
    return ErrorEnvelope(
        status_code=exc.status_code,
        code="http_error",
        message=message,
        details=details,
        headers=getattr(exc, "headers", None),
    )


def _clean_message(error: dict[str, Any]) -> str:
    message = str(error.get("msg") or "Invalid value")
    # pydantic prefixes messages raised from validators
    return message.removeprefix("Value error, ")


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    messages: list[str] = []
    for error in errors:
        text = _clean_message(error)
        if text not in messages:
            messages.append(text)
    return ErrorEnvelope(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        code="validation_error",
        message=", ".join(messages) or "Validation failed",
        details={"errors": [{k: v for k, v in e.items() if k != "ctx"} for e in errors]},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
