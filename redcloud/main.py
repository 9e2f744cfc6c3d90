"""Application wiring: middleware, routers, error handlers and schema bootstrap."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.middleware.sessions import SessionMiddleware

from . import models  # noqa: F401  (registers tables on Base.metadata)
from .core.config import settings
from .core.errors import register_exception_handlers
from .core.logging import configure_logging
from .db.migrate import run_migrations
from .db.session import Base, engine
from .middlewares import RequestIdMiddleware, SecurityHeadersMiddleware
from .routers import (
    api_auth,
    api_guestbook,
    api_organizations,
    api_profile,
    api_tasks,
    realtime,
    ui,
)


def init_db() -> list[str]:
    """Create missing tables, then apply additive upgrades to existing ones."""

    Base.metadata.create_all(bind=engine)
    return run_migrations(engine)


def create_app() -> FastAPI:
    app = FastAPI(title=settings.APP_NAME)

    app.mount("/static", StaticFiles(directory=str(settings.static_dir)), name="static")

    # last added runs first: request ids wrap everything, sessions sit closest to the routes
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.APP_SECRET,
        session_cookie=settings.SESSION_COOKIE_NAME,
        max_age=settings.SESSION_MAX_AGE,
        same_site="lax",
        https_only=not settings.is_dev,
    )
    if settings.ALLOWED_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.ALLOWED_ORIGINS,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    app.add_middleware(SecurityHeadersMiddleware, hsts=not settings.is_dev)
    app.add_middleware(RequestIdMiddleware)

    register_exception_handlers(app)

    for module in (api_auth, api_organizations, api_tasks, api_guestbook, api_profile, realtime, ui):
        app.include_router(module.router)

    @app.get("/health", tags=["ops"])
    async def health() -> dict[str, bool]:
        return {"ok": True}

    Instrumentator().instrument(app).expose(app, include_in_schema=False)
    return app


configure_logging()
init_db()
app = create_app()

__all__ = ["app", "create_app", "init_db"]
