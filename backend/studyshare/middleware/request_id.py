"""
StudyShare Backend - Request ID Middleware
===========================================

What:  Gives every request a short correlation id.
How:   Reuses the client's X-Request-ID header when present, otherwise
       generates one; stores it in a ContextVar for loggers and exception
       handlers, and echoes it in the response header.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own id
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

REQUEST_ID_HEADER = "X-Request-ID"


def new_request_id() -> str:
    return uuid.uuid4().hex[:8]


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns X-Request-ID to each request and response."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get(REQUEST_ID_HEADER) or new_request_id()
        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)

        response.headers[REQUEST_ID_HEADER] = rid
        return response
