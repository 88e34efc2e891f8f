"""
txscope — Echo Routes
=======================

What:  Liveness probes for the server alone and for server + database.
How:   Both are context-carrying handlers. /server needs no database and is
       registered with contextual(); /database reads the clock inside the
       request transaction and is registered with transactional().

Route Inventory:
    GET /api/echo/server    → "hello, server!"
    GET /api/echo/database  → "hello, database! at <timestamp>"
"""

from fastapi import APIRouter
from starlette.requests import Request
from starlette.responses import PlainTextResponse

from txscope.context import ExecutionContext, HandlerResult, contextual, get_transaction
from txscope.exceptions import QueryError
from txscope.middleware.transaction import transactional
from txscope.queries import database_time
from txscope.schemas.responses import ERROR_RESPONSES

router = APIRouter(prefix="/api/echo", tags=["Echo"])


async def echo_server(ctx: ExecutionContext, request: Request) -> HandlerResult:
    """Ping the server."""
    return HandlerResult.ok(PlainTextResponse("hello, server!"))


async def echo_database(ctx: ExecutionContext, request: Request) -> HandlerResult:
    """Ping the server and the database."""
    tx = get_transaction(ctx)
    try:
        now = await database_time(tx)
    except QueryError as exc:
        return HandlerResult.fail(500, exc)
    return HandlerResult.ok(PlainTextResponse(f"hello, database! at {now}"))


router.add_api_route(
    "/server",
    contextual(echo_server),
    methods=["GET"],
    response_class=PlainTextResponse,
    summary="Server liveness",
)
router.add_api_route(
    "/database",
    transactional(echo_database),
    methods=["GET"],
    response_class=PlainTextResponse,
    responses=ERROR_RESPONSES,
    summary="Server and database liveness (transactional)",
)
