# disclosure/middleware/request_id.py
from __future__ import annotations

import re
import uuid
from contextvars import ContextVar
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

HEADER = "X-Request-ID"

# ids end up in every log line; anything else is replaced
_VALID_ID = re.compile(r"^[A-Za-z0-9._\-]{1,128}$")

_current: ContextVar[Optional[str]] = ContextVar("disclosure_request_id", default=None)


def get_request_id() -> Optional[str]:
    return _current.get()


def _incoming_id(request: Request) -> Optional[str]:
    raw = (request.headers.get(HEADER) or "").strip()
    return raw if _VALID_ID.match(raw) else None


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Correlates log lines of one request; the id is echoed in the response."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        rid = _incoming_id(request) or uuid.uuid4().hex
        request.state.request_id = rid
        token = _current.set(rid)
        try:
            response = await call_next(request)
        finally:
            _current.reset(token)
        response.headers[HEADER] = rid
        return response
