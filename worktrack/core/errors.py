from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from fastapi import Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

LOGIN_PATH = "/auth"
PARTIAL_PREFIX = "/ui/"


class BackendError(Exception):
    """The WorkTrack REST backend answered with an error status."""

    def __init__(self, status_code: int, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.path = path


class SessionExpired(BackendError):
    """The backend no longer recognises the session cookie (HTTP 401)."""

    def __init__(self, message: str = "Authentication required", *, path: str | None = None) -> None:
        super().__init__(status.HTTP_401_UNAUTHORIZED, message, path=path)


class AuthenticationFailed(BackendError):
    """Username or password were rejected on login."""

    def __init__(self, message: str = "Credenziali non valide", *, path: str | None = None) -> None:
        super().__init__(status.HTTP_401_UNAUTHORIZED, message, path=path)


class BackendUnavailable(BackendError):
    """The backend could not be reached at all."""

    def __init__(self, message: str = "Servizio non raggiungibile", *, path: str | None = None) -> None:
        super().__init__(status.HTTP_503_SERVICE_UNAVAILABLE, message, path=path)


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


def wants_json(request: Request) -> bool:
    """Partials, API paths and explicit JSON clients get envelopes instead of pages."""

    path = request.url.path
    if path.startswith(PARTIAL_PREFIX) or path.startswith("/api"):
        return True
    accept = (request.headers.get("accept") or "").lower()
    return "application/json" in accept and "text/html" not in accept


def login_redirect(request: Request) -> RedirectResponse:
    target = request.url.path
    if request.url.query:
        target = f"{target}?{request.url.query}"
    return RedirectResponse(url=f"{LOGIN_PATH}?next={quote(target, safe='/')}", status_code=status.HTTP_302_FOUND)


def _render_page(request: Request, template: str, status_code: int, **context: Any):
    # Imported lazily: the page templates depend on the layout helpers, which depend on this module.
    from ..views.layout import templates

    return templates.TemplateResponse(request, template, context, status_code=status_code)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_401_UNAUTHORIZED and not wants_json(request):
        return login_redirect(request)
    if not wants_json(request):
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return _render_page(request, "not_found.html", exc.status_code)
        if exc.status_code == status.HTTP_403_FORBIDDEN:
            return _render_page(request, "forbidden.html", exc.status_code)
    detail = exc.detail
    message = detail if isinstance(detail, str) else "Error"
    details = detail if isinstance(detail, dict) else None
    return ErrorEnvelope(status_code=exc.status_code, code="http_error", message=message, details=details)


async def session_expired_handler(request: Request, exc: SessionExpired):
    from ..session import clear_state

    logger.info("Backend rejected session for %s", exc.path or request.url.path)
    clear_state(request)
    if wants_json(request):
        return ErrorEnvelope(status_code=exc.status_code, code="session_expired", message=exc.message)
    return login_redirect(request)


async def backend_error_handler(request: Request, exc: BackendError):
    status_code = exc.status_code if exc.status_code >= 500 else status.HTTP_502_BAD_GATEWAY
    logger.error("Backend error %s on %s: %s", exc.status_code, exc.path, exc.message)
    if wants_json(request):
        return ErrorEnvelope(status_code=status_code, code="backend_error", message=exc.message)
    return _render_page(request, "error.html", status_code, message=exc.message)


async def validation_exception_handler(request: Request, exc):  # type: ignore[override]
    from fastapi.exceptions import RequestValidationError

    if isinstance(exc, RequestValidationError):
        return ErrorEnvelope(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code="validation_error",
            message="Validation failed",
            details={"errors": exc.errors()},
        )
    raise exc
