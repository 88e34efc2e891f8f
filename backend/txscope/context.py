"""
txscope — Execution Context & Handler Contract
================================================

What:  The per-request carrier passed to handlers, the value handlers
       return, and the binding that turns a handler into a route endpoint.
Why:   Handlers declare success or failure uniformly and reach the ambient
       transaction without knowing how the wrapper built it.
How:   ExecutionContext is a frozen dataclass with an explicit, typed
       `transaction` field (no string-keyed lookup, no runtime casts).
       Handlers are `async (ExecutionContext, Request) -> HandlerResult`.

Handler contract:
    async def echo(ctx: ExecutionContext, request: Request) -> HandlerResult:
        return HandlerResult.ok(PlainTextResponse("hello, server!"))

    async def fetch(ctx: ExecutionContext, request: Request) -> HandlerResult:
        tx = get_transaction(ctx)
        try:
            row = await tx.query_row("SELECT now()")
        except QueryError as exc:
            return HandlerResult.fail(500, exc)
        ...

Errors are returned, never raised, across the handler boundary. Whether a
route gets a transaction is decided when it is registered:
    router.add_api_route("/x", contextual(handler))      # ctx.transaction is None
    router.add_api_route("/y", transactional(handler))   # ctx.transaction is open
"""

import logging
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, NamedTuple, Optional

from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from txscope.exceptions import PreconditionViolation
from txscope.middleware.request_id import request_id_var
from txscope.transaction import Transaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionContext:
    """
    Immutable per-request carrier of ambient values.

    Holds at most one Transaction. Built at the start of dispatch and
    dropped when the request ends; never shared between requests.
    """

    request_id: str = ""
    transaction: Optional[Transaction] = None

    @classmethod
    def for_request(cls, request: Request) -> "ExecutionContext":
        rid = getattr(request.state, "request_id", None) or request_id_var.get("")
        return cls(request_id=rid)

    def with_transaction(self, transaction: Transaction) -> "ExecutionContext":
        return replace(self, transaction=transaction)


class HandlerResult(NamedTuple):
    """
    Outcome of one handler invocation.

    status_code: HTTP status of the response.
    error:       Present when the handler failed. Must pair with a non-2xx
                 status to be rendered as an error.
    response:    Body written by the handler on success.
    """

    status_code: int
    error: Optional[Exception] = None
    response: Optional[Response] = None

    @classmethod
    def ok(cls, response: Response) -> "HandlerResult":
        return cls(status_code=response.status_code, response=response)

    @classmethod
    def fail(cls, status_code: int, error: Exception) -> "HandlerResult":
        return cls(status_code=status_code, error=error)

    @property
    def failed(self) -> bool:
        return self.error is not None


Handler = Callable[[ExecutionContext, Request], Awaitable[HandlerResult]]
Endpoint = Callable[[Request], Awaitable[Response]]


def get_transaction(ctx: ExecutionContext) -> Transaction:
    """
    Returns the request's transaction.

    Raises:
        PreconditionViolation: The route was not registered with
            transactional(). This is a wiring bug, not a runtime condition.
    """
    if ctx.transaction is None:
        raise PreconditionViolation(
            "No transaction in execution context; "
            "register this route with transactional() to use get_transaction()"
        )
    return ctx.transaction


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})


def error_message(error: Exception) -> str:
    return getattr(error, "message", None) or str(error)


def render_result(result: HandlerResult) -> Response:
    """
    Turns a HandlerResult into the HTTP response.

    An error paired with a success status is a handler bug; it is still
    reported as a failure, with status 500.
    """
    if result.error is not None:
        status_code = result.status_code
        if status_code < 400:
            logger.warning(
                "Handler returned error %r with non-error status %d; responding 500",
                result.error,
                status_code,
            )
            status_code = 500
        return error_response(status_code, error_message(result.error))

    if result.response is not None:
        result.response.status_code = result.status_code
        return result.response
    return Response(status_code=result.status_code)


def contextual(handler: Handler) -> Endpoint:
    """
    Binds a handler to a route without a transaction.

    The handler still receives an ExecutionContext; calling
    get_transaction() on it raises PreconditionViolation.
    """

    async def endpoint(request: Request) -> Response:
        ctx = ExecutionContext.for_request(request)
        result = await handler(ctx, request)
        if result.failed:
            logger.warning("[%s] Handler error: %s", ctx.request_id, error_message(result.error))
        return render_result(result)

    endpoint.__name__ = getattr(handler, "__name__", "endpoint")
    endpoint.__doc__ = handler.__doc__
    return endpoint
