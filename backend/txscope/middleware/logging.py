"""
txscope — Request Logging Middleware
======================================

What:  One access-log line per request: app name, method, URL, duration.
Why:   The simplest way to see the latency difference between the
       transactional and non-transactional routes.
How:   Times the downstream call with perf_counter and logs on the way out.

Log line:
    [app] [GET] '/api/select/tran' 3.4ms 200 [a1b2c3d4]

Level follows the status class: 5xx → ERROR, 4xx → WARNING, else INFO.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from txscope.middleware.request_id import request_id_var

logger = logging.getLogger("txscope.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs method, URL, duration, status and request ID for each request.

    Duration covers everything downstream of this middleware: transaction
    acquisition, the handler's queries, finalization and rendering.
    """

    def __init__(self, app: ASGIApp, app_name: str = "app"):
        super().__init__(app)
        self.app_name = app_name

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start_time = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        rid = request_id_var.get("")

        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "[%s] [%s] %r %.1fms %d [%s]",
            self.app_name,
            request.method,
            str(request.url),
            duration_ms,
            status,
            rid,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": request.url.path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
            },
        )

        return response
