"""
txscope — Recovery Middleware
===============================

What:  Outer safety net converting any exception that escapes the route
       into a JSON 500 response.
Why:   Handler errors travel as values; anything raised is a fault. The
       transaction wrapper has already rolled back and released by the time
       an exception reaches here, so this layer only has to answer the client.
How:   Wraps call_next in try/except and logs the traceback server-side.

Response body is always {"message": "internal error"}; exception text stays
in the logs. PreconditionViolation is logged at CRITICAL because it means a
route is wired wrong.
"""

import logging

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from txscope.exceptions import PreconditionViolation
from txscope.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "internal error"


class RecoverMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except PreconditionViolation as exc:
            logger.critical(
                "[%s] Precondition violated on %s %s: %s",
                request_id_var.get(""),
                request.method,
                request.url.path,
                exc,
                exc_info=True,
            )
        except Exception as exc:
            logger.error("[%s] panic: %s", request_id_var.get(""), exc, exc_info=True)

        return JSONResponse(status_code=500, content={"message": INTERNAL_ERROR_MESSAGE})
