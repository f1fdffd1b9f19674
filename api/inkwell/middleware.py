"""HTTP middleware: security headers and request timing logs."""

from __future__ import annotations

import logging
import os
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

# Requests to these paths are not logged
QUIET_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}

DOCS_PATHS = {"/docs", "/redoc"}

# Feeds are consumed by readers and crawlers from any origin
PUBLIC_DOCUMENT_PATHS = {"/feed.xml", "/sitemap.xml"}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add OWASP-recommended security headers to every response."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=(), payment=()"

        if os.getenv("ENVIRONMENT", "development") == "production" or request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        # JSON, XML feeds and uploaded images only (docs UI excluded)
        if request.url.path not in DOCS_PATHS:
            response.headers["Content-Security-Policy"] = "default-src 'none'; img-src 'self'; frame-ancestors 'none'"

        if request.url.path in PUBLIC_DOCUMENT_PATHS:
            response.headers["Cache-Control"] = "public, max-age=300"

        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and duration of each request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        if request.url.path not in QUIET_PATHS:
            level = logging.WARNING if response.status_code >= 500 else logging.INFO
            logger.log(
                level,
                f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f} ms)",
            )
        return response
