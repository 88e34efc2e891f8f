"""
txscope — Request ID Middleware
=================================

What:  Assigns an ID to each incoming request and echoes it in the response.
Why:   Lets every log line of one request, including the transaction
       wrapper's commit/rollback lines, be correlated.
How:   Takes X-Request-ID from the client or generates a short UUID, stores
       it in a ContextVar and on request.state, returns it in a header.
When:  Outermost middleware (runs before logging and recovery).
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local storage for the current request ID.
# Concurrent requests run in one thread; each task sees its own value.
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Behavior:
        1. Use the client's X-Request-ID header if present
        2. Otherwise generate an 8-character UUID prefix
        3. Store in ContextVar (loggers) and request.state (handlers)
        4. Add to response headers
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())[:8]

        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers[REQUEST_ID_HEADER] = rid
        return response
