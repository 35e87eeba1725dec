"""
StudyShare Backend - Access Log Middleware
===========================================

What:  One log line per request: method, path, route template, status,
       duration, request id.
How:   Level follows the status class (5xx → ERROR, 4xx → WARNING, else INFO).
       Request bodies are never logged; lesson text can be personal.

/health is skipped: probes hit it every few seconds.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from studyshare.middleware.request_id import request_id_var

logger = logging.getLogger("studyshare.access")

SKIPPED_PATHS = {"/health"}


def level_for_status(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


def route_path(request: Request) -> str:
    """
    The matched route template, e.g. `/api/notes/{note_id}`.

    Keeps note ids out of the aggregatable `route` field; falls back to the
    raw path when no route matched (404s).
    """
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs every non-health request after the response is produced."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in SKIPPED_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        client_ip = request.client.host if request.client else "unknown"
        rid = request_id_var.get("")
        status = response.status_code

        logger.log(
            level_for_status(status),
            "%s %s %d %.1fms [%s] from %s",
            request.method,
            request.url.path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": request.url.path,
                "route": route_path(request),
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
