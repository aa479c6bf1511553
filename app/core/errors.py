# app/core/errors.py
from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

log = logging.getLogger("app.errors")


# -----------------------------
# Domain error taxonomy
# -----------------------------
class DomainError(Exception):
    """Base for typed failures raised by the membership and invite core."""

    kind = "domain_error"
    status_code = 400
    default_message = "Request failed."

    def __init__(self, message: Optional[str] = None, *, details: Optional[Any] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationFailed(DomainError):
    kind = "validation_error"
    status_code = 400
    default_message = "Invalid request."


class Unauthenticated(DomainError):
    kind = "unauthenticated"
    status_code = 401
    default_message = "Not authenticated."


class NoActiveContext(DomainError):
    """No company selected: zero memberships, or several and no valid hint."""

    kind = "no_active_context"
    status_code = 403
    default_message = "No active company selected."


class Forbidden(DomainError):
    kind = "forbidden"
    status_code = 403
    default_message = "Insufficient privileges."


class NotFound(DomainError):
    kind = "not_found"
    status_code = 404
    default_message = "Not found."


class Conflict(DomainError):
    kind = "conflict"
    status_code = 409
    default_message = "The resource was changed by another request."


class InvalidTransition(DomainError):
    kind = "invalid_transition"
    status_code = 410
    default_message = "Invite is no longer available."


class StoreFailure(DomainError):
    kind = "store_failure"
    status_code = 500
    default_message = "Storage error."


# -----------------------------
# Trace / request id helpers
# -----------------------------
def _ensure_trace_id(request: Request) -> str:
    """
    Return a stable trace_id for this request.
    Prefer a value already set on request.state, then common headers,
    and finally generate a new one (and store it on request.state).
    """
    for attr in ("trace_id", "request_id"):
        val = getattr(getattr(request, "state", object()), attr, None)
        if val:
            return str(val)

    for h in ("x-request-id", "x-correlation-id", "x-trace-id"):
        v = request.headers.get(h)
        if v:
            request.state.trace_id = v
            return v

    new_id = uuid.uuid4().hex
    request.state.trace_id = new_id
    return new_id


def _payload(
    *,
    message: str,
    typ: str,
    status: int,
    trace_id: str,
    details: Optional[Any] = None,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "ok": False,
        "error": {
            "type": typ,
            "message": message,
            "status": status,
            "trace_id": trace_id,
        },
    }
    if details is not None:
        body["error"]["details"] = details
    return body


# -----------------------------
# Install / register handlers
# -----------------------------
def register_exception_handlers(app: FastAPI) -> None:
    """
    Registers consistent JSON error handlers.
    Also ensures X-Request-ID header is present on error responses.
    """

    @app.exception_handler(DomainError)
    async def domain_exc_handler(request: Request, exc: DomainError):
        trace_id = _ensure_trace_id(request)
        status_code = int(exc.status_code)
        level = logging.ERROR if status_code >= 500 else logging.WARNING
        log.log(
            level,
            "%s %s %s -> %s | trace_id=%s | message=%r",
            type(exc).__name__,
            request.method,
            request.url.path,
            status_code,
            trace_id,
            exc.message,
        )
        return JSONResponse(
            status_code=status_code,
            headers={"X-Request-ID": trace_id},
            content=_payload(
                message=exc.message,
                typ=exc.kind,
                status=status_code,
                trace_id=trace_id,
                details=exc.details,
            ),
        )

    @app.exception_handler(HTTPException)
    async def http_exc_handler(request: Request, exc: HTTPException):
        trace_id = _ensure_trace_id(request)
        status_code = int(exc.status_code)
        # detail can be str, dict, or other; keep a safe message
        message = exc.detail if isinstance(exc.detail, str) else "HTTP error"
        details = exc.detail if isinstance(exc.detail, dict) else None

        headers = dict(exc.headers or {})
        headers["X-Request-ID"] = trace_id

        level = logging.ERROR if status_code >= 500 else logging.WARNING
        log.log(
            level,
            "HTTPException %s %s -> %s | trace_id=%s | detail=%r",
            request.method,
            request.url.path,
            status_code,
            trace_id,
            exc.detail,
        )

        return JSONResponse(
            status_code=status_code,
            headers=headers,
            content=_payload(
                message=message,
                typ="http_error",
                status=status_code,
                trace_id=trace_id,
                details=details,
            ),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):
        trace_id = _ensure_trace_id(request)
        errors = exc.errors()
        log.warning(
            "ValidationError %s %s -> 400 | trace_id=%s | errors=%s",
            request.method,
            request.url.path,
            trace_id,
            errors,
        )
        return JSONResponse(
            status_code=400,
            headers={"X-Request-ID": trace_id},
            content=_payload(
                message="Validation failed.",
                typ="validation_error",
                status=400,
                trace_id=trace_id,
                details=[{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in errors],
            ),
        )

    @app.exception_handler(SQLAlchemyError)
    async def store_exc_handler(request: Request, exc: SQLAlchemyError):
        trace_id = _ensure_trace_id(request)
        log.exception(
            "StoreFailure %s %s -> 500 | trace_id=%s",
            request.method,
            request.url.path,
            trace_id,
        )
        return JSONResponse(
            status_code=500,
            headers={"X-Request-ID": trace_id},
            content=_payload(
                message=StoreFailure.default_message,
                typ=StoreFailure.kind,
                status=500,
                trace_id=trace_id,
            ),
        )

    @app.exception_handler(Exception)
    async def unhandled_exc_handler(request: Request, exc: Exception):
        trace_id = _ensure_trace_id(request)
        # Full traceback to server logs; generic message to client
        log.exception(
            "Unhandled exception %s %s -> 500 | trace_id=%s",
            request.method,
            request.url.path,
            trace_id,
        )
        return JSONResponse(
            status_code=500,
            headers={"X-Request-ID": trace_id},
            content=_payload(
                message="Internal server error.",
                typ="internal_error",
                status=500,
                trace_id=trace_id,
            ),
        )
