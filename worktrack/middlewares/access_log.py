from __future__ import annotations

import logging
import time
from contextvars import ContextVar
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)
principal_ctx_var: ContextVar[str | None] = ContextVar("principal", default=None)
logger = logging.getLogger("worktrack.access")

# Assets, health checks and metrics scrapes get no access line.
QUIET_PREFIXES = ("/static/", "/health", "/metrics")


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400 and status_code not in (401, 404):
        return logging.WARNING
    return logging.INFO


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Tag each request with a correlation id and write one access line per page or partial."""

    def __init__(self, app, header_name: str = "X-Request-ID") -> None:  # type: ignore[override]
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(self.header_name) or uuid4().hex
        request.state.request_id = request_id
        id_token = request_id_ctx_var.set(request_id)
        principal_token = principal_ctx_var.set(None)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            principal = getattr(request.state, "principal", None)
        finally:
            request_id_ctx_var.reset(id_token)
            principal_ctx_var.reset(principal_token)

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        response.headers[self.header_name] = request_id
        path = request.url.path
        if path.startswith(QUIET_PREFIXES):
            return response

        data = {
            "request_id": request_id,
            "method": request.method,
            "path": path,
            "partial": path.startswith("/ui/"),
            "status": response.status_code,
            "duration_ms": elapsed_ms,
        }
        if principal:
            data["principal"] = principal
        if response.status_code in (301, 302, 303, 307):
            data["location"] = response.headers.get("location")
        logger.log(_level_for(response.status_code), "%s %s", request.method, path, extra={"extra_data": data})
        return response
