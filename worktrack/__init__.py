"""Application factory and top-level wiring for the WorkTrack web UI.

``create_app`` builds everything a worker needs once: the query cache, the
backend client, the repository that ties the two together, the session and
logging middlewares, static files, the routers and the exception handlers.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from .core.config import AppSettings, settings as default_settings
from .core.jinja import configure_templates
from .core.errors import (
    BackendError,
    SessionExpired,
    backend_error_handler,
    http_exception_handler,
    session_expired_handler,
    validation_exception_handler,
)
from .middlewares import AccessLogMiddleware, SecurityHeadersMiddleware
from .services.backend import BackendClient
from .services.repository import CacheEvent, QueryCache, Repository
from .views.layout import templates

logger = logging.getLogger(__name__)


def _log_cache_event(event: CacheEvent) -> None:
    if event.kind == "invalidated":
        logger.debug(
            "Cache entry invalidated",
            extra={"extra_data": {"query": event.key.path, "scope": event.key.scope}},
        )


def create_app(
    settings: AppSettings | None = None,
    backend: BackendClient | None = None,
    cache: QueryCache | None = None,
) -> FastAPI:
    cfg = settings or default_settings

    app = FastAPI(title=cfg.APP_NAME)

    cache = cache if cache is not None else QueryCache(ttl_seconds=cfg.CACHE_TTL_SECONDS)
    backend = backend or BackendClient.from_settings(cfg)
    app.state.settings = cfg
    configure_templates(cfg, templates)
    app.state.repository = Repository(cache, backend)
    unsubscribe = cache.subscribe(_log_cache_event)

    app.mount("/static", StaticFiles(directory=str(cfg.static_dir)), name="static")

    app.add_middleware(SecurityHeadersMiddleware, https_only=cfg.HTTPS_ONLY)
    app.add_middleware(AccessLogMiddleware)
    # Outermost: everything below sees request.session.
    app.add_middleware(
        SessionMiddleware,
        secret_key=cfg.APP_SECRET,
        session_cookie=cfg.SESSION_COOKIE_NAME,
        max_age=cfg.SESSION_MAX_AGE,
        same_site="lax",
        https_only=cfg.HTTPS_ONLY,
    )

    # UI login routes (no session required)
    from .routers import auth_ui as auth_ui_router

    app.include_router(auth_ui_router.router)

    # UI pages and partials (session required via router dependency)
    from .routers import ui as ui_router

    app.include_router(ui_router.router)

    # Admin pages (admin role required via router dependency)
    from .routers import admin as admin_router

    app.include_router(admin_router.router)

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(SessionExpired, session_expired_handler)
    app.add_exception_handler(BackendError, backend_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    @app.on_event("shutdown")
    async def _teardown() -> None:
        unsubscribe()
        cache.clear()

    return app


__all__ = ["create_app"]
