"""
txscope — Hello Routes
========================

Three ways to say hello, one per wiring style:

    GET /api/hello/context1  bare Starlette endpoint: takes the Request,
                             returns a Response, knows nothing of the
                             execution context
    GET /api/hello/context2  context-carrying handler returning a
                             HandlerResult, registered with contextual()
    GET /api/hello/context3  same handler contract, registered with
                             transactional(); reads the database clock
"""

from fastapi import APIRouter
from starlette.requests import Request
from starlette.responses import PlainTextResponse

from txscope.context import ExecutionContext, HandlerResult, contextual, get_transaction
from txscope.exceptions import QueryError
from txscope.middleware.transaction import transactional
from txscope.queries import database_time
from txscope.schemas.responses import ERROR_RESPONSES

router = APIRouter(prefix="/api/hello", tags=["Hello"])


@router.get("/context1", response_class=PlainTextResponse)
async def hello_context(request: Request) -> PlainTextResponse:
    return PlainTextResponse("hello, world!")


async def hello_result(ctx: ExecutionContext, request: Request) -> HandlerResult:
    return HandlerResult.ok(PlainTextResponse("hello, world!"))


async def hello_transaction(ctx: ExecutionContext, request: Request) -> HandlerResult:
    tx = get_transaction(ctx)
    try:
        now = await database_time(tx)
    except QueryError as exc:
        return HandlerResult.fail(500, exc)
    return HandlerResult.ok(PlainTextResponse(f"hello, database! at {now}"))


router.add_api_route(
    "/context2", contextual(hello_result), methods=["GET"], response_class=PlainTextResponse
)
router.add_api_route(
    "/context3",
    transactional(hello_transaction),
    methods=["GET"],
    response_class=PlainTextResponse,
    responses=ERROR_RESPONSES,
)
