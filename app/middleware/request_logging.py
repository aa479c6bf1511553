# app/middleware/request_logging.py
from __future__ import annotations

import logging
import time
import uuid
from typing import Iterable, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("app.request")


SKIPPED_PREFIXES: Tuple[str, ...] = (
    "/api/healthz",
    "/api/readyz",
    "/docs",
    "/redoc",
    "/openapi.json",
)


def _client_ip(request: Request) -> str:
    xff = request.headers.get("x-forwarded-for")
    if xff:
        return xff.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _level_for(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    One log line per request with trace_id, duration and, once resolved,
    the acting user and active company. X-Request-ID is echoed or generated
    and set on every response.
    """

    def __init__(self, app, skipped_prefixes: Iterable[str] = SKIPPED_PREFIXES):
        super().__init__(app)
        self.skipped_prefixes = tuple(skipped_prefixes)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        method = request.method.upper()
        trace_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.trace_id = trace_id

        skip = method == "OPTIONS" or path.startswith(self.skipped_prefixes)
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            if not skip:
                logger.exception(
                    "request CRASH %s %s ip=%s dur_ms=%s trace_id=%s",
                    method,
                    path,
                    _client_ip(request),
                    int((time.perf_counter() - start) * 1000),
                    trace_id,
                )
            raise

        response.headers["X-Request-ID"] = trace_id
        if skip:
            return response

        status = response.status_code
        logger.log(
            _level_for(status),
            "request %s %s -> %s ip=%s ua=%r user=%s company=%s dur_ms=%s trace_id=%s",
            method,
            path,
            status,
            _client_ip(request),
            request.headers.get("user-agent", "-"),
            getattr(request.state, "user_id", "-"),
            getattr(request.state, "company_id", "-"),
            int((time.perf_counter() - start) * 1000),
            trace_id,
        )
        return response
