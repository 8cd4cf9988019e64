"""Error taxonomy shared by services and routers, plus the FastAPI handler."""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

log = logging.getLogger("disclosure.errors")


class DisclosureError(Exception):
    """Base error. ``kind`` is the stable machine-readable code sent to clients."""

    kind = "internal_error"
    status_code = 500
    default_message = "internal error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(DisclosureError):
    kind = "unauthenticated"
    status_code = 401
    default_message = "authentication required"


class MissingOrgContext(DisclosureError):
    kind = "missing_org_context"
    status_code = 400
    default_message = "no organization associated with this identity"


class Forbidden(DisclosureError):
    kind = "forbidden"
    status_code = 403
    default_message = "forbidden"


class NotFound(DisclosureError):
    kind = "not_found"
    status_code = 404
    default_message = "not found"


class ValidationError(DisclosureError):
    kind = "validation_error"
    status_code = 422
    default_message = "invalid input"


class Conflict(DisclosureError):
    kind = "conflict"
    status_code = 409
    default_message = "conflict"


class Expired(DisclosureError):
    kind = "expired"
    status_code = 410
    default_message = "invite expired"


class AlreadyAccepted(DisclosureError):
    kind = "already_accepted"
    status_code = 409
    default_message = "invite already accepted"


class WrongOrg(DisclosureError):
    kind = "wrong_org"
    status_code = 403
    default_message = "invite belongs to a different organization"


class EmailMismatch(DisclosureError):
    kind = "email_mismatch"
    status_code = 403
    default_message = "signed-in email does not match the invite"


class DependencyUnavailable(DisclosureError):
    kind = "dependency_unavailable"
    status_code = 503
    default_message = "a backing service is unavailable"


class RenderTimeout(DependencyUnavailable):
    kind = "render_timeout"
    status_code = 504
    default_message = "document rendering timed out"


class PreconditionFailed(DisclosureError):
    kind = "precondition_failed"
    status_code = 412
    default_message = "precondition failed"


def error_body(kind: str, message: str) -> dict:
    return {"error": {"kind": kind, "message": message}}


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(DisclosureError)
    async def disclosure_error_handler(request: Request, exc: DisclosureError) -> JSONResponse:
        if exc.status_code >= 500:
            log.error("request failed: %s (%s)", exc.kind, exc.message)
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.kind, exc.message))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        first = (exc.errors() or [{}])[0]
        loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        msg = first.get("msg") or "invalid input"
        return JSONResponse(
            status_code=422,
            content=error_body(ValidationError.kind, f"{loc}: {msg}" if loc else msg),
        )
