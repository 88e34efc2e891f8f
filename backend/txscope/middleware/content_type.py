"""
txscope — Content-Type Middleware
===================================

What:  Gives every response a Content-Type header.
Why:   Handlers that return a bare Response (status only) would otherwise
       reach the client untyped.
How:   Sets the configured default only when the header is missing;
       anything the handler or a response class set is left alone.
"""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp


class ContentTypeMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, default: str = "text/plain; charset=utf-8"):
        super().__init__(app)
        self.default = default

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)
        if "content-type" not in response.headers:
            response.headers["Content-Type"] = self.default
        return response
