"""ASGI middlewares wrapped around every page, partial and asset response."""

from __future__ import annotations

from .access_log import AccessLogMiddleware, principal_ctx_var, request_id_ctx_var
from .security_headers import SecurityHeadersMiddleware

__all__ = ["AccessLogMiddleware", "SecurityHeadersMiddleware", "principal_ctx_var", "request_id_ctx_var"]
