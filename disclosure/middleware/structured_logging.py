# disclosure/middleware/structured_logging.py
from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..config import settings

log = logging.getLogger("disclosure.request")


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    One access line per request: method, path, status, latency and, in dev
    auth mode, the spoofed org/email headers. Token contents are never logged.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        t0 = time.perf_counter()

        org_slug: Optional[str] = None
        user_email: Optional[str] = None
        if settings.auth_mode == "dev":
            org_slug = request.headers.get(settings.dev_header_org_slug)
            user_email = request.headers.get(settings.dev_header_email)

        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            log.info(
                "http_request",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": status_code,
                    "latency_ms": int((time.perf_counter() - t0) * 1000),
                    "org_slug": org_slug,
                    "user_email": user_email,
                },
            )
