from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

VIEWPORT_HINTS = "Sec-CH-Viewport-Width, Viewport-Width"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach a baseline set of security headers for browser clients."""

    def __init__(self, app, https_only: bool = False) -> None:  # type: ignore[override]
        super().__init__(app)
        self.https_only = https_only

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        if self.https_only:
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        response.headers.setdefault(
            "Content-Security-Policy",
            "default-src 'self'; base-uri 'self'; frame-ancestors 'none'; object-src 'none';",
        )
        # Ask browsers for the viewport width so navigation can be chosen server side.
        response.headers.setdefault("Accept-CH", VIEWPORT_HINTS)
        response.headers.setdefault("Vary", "Sec-CH-Viewport-Width, Viewport-Width, Cookie")
        return response
