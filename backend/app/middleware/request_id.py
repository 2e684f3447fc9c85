"""
Health Metrics Tracker Backend — Request ID Middleware
========================================================

What:  Assigns a correlation ID to each request and echoes it in X-Request-ID.
Why:   Error envelopes and access log lines carry the same ID, so a client
       reporting a failed submission can be matched to the server log entry.
How:   Reuses a client-supplied X-Request-ID, otherwise generates a short UUID.
       The ID is stored in a ContextVar (read by loggers and error handlers)
       and in request.state (read by route handlers).
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Outermost middleware; everything after it can read request_id_var."""

    HEADER = "X-Request-ID"

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        # 8 chars of a UUID is enough to correlate and stays readable in logs
        rid = request.headers.get(self.HEADER) or uuid.uuid4().hex[:8]

        # Not reset afterwards: the catch-all 500 handler runs outside this
        # middleware and still reads the ID for its envelope
        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)

        response.headers[self.HEADER] = rid
        return response
