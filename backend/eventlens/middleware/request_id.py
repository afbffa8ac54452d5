"""
EventLens Backend — Request ID Middleware
==========================================

What:  Gives every request a correlation id, echoed in `X-Request-ID`.
How:   Uses the client's X-Request-ID header when present (the mobile app
       sends one per scan so a user report can be matched to server logs),
       otherwise a short uuid. Stored in a ContextVar for loggers and error
       handlers, and on `request.state` for route handlers.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one thread each see their own id.
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

MAX_CLIENT_ID_LENGTH = 64


class RequestIDMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        client_id = request.headers.get("X-Request-ID", "").strip()
        rid = client_id[:MAX_CLIENT_ID_LENGTH] if client_id else uuid.uuid4().hex[:8]

        # Not reset afterwards: the catch-all error handler runs outside this
        # middleware and still needs the id.
        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
