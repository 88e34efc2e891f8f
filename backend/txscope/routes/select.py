"""
txscope — Select Routes
=========================

What:  The same read performed with and without a request transaction.
Why:   Contrasts the two access paths. /tran pays for BEGIN and COMMIT on a
       dedicated connection; /notran borrows a pooled connection for a
       single statement.

Route Inventory:
    GET /api/select/tran    → transactional(select_in_transaction)
    GET /api/select/notran  → contextual(select_without_transaction)
"""

from fastapi import APIRouter
from starlette.requests import Request
from starlette.responses import PlainTextResponse

from txscope.context import ExecutionContext, HandlerResult, contextual, get_transaction
from txscope.database import get_database
from txscope.exceptions import TxScopeError
from txscope.middleware.transaction import transactional
from txscope.queries import database_time
from txscope.schemas.responses import ERROR_RESPONSES

router = APIRouter(prefix="/api/select", tags=["Select"])


def _greeting(now) -> PlainTextResponse:
    return PlainTextResponse(f"hello, from database at {now} !")


async def select_in_transaction(ctx: ExecutionContext, request: Request) -> HandlerResult:
    tx = get_transaction(ctx)
    try:
        now = await database_time(tx)
    except TxScopeError as exc:
        return HandlerResult.fail(500, exc)
    return HandlerResult.ok(_greeting(now))


async def select_without_transaction(ctx: ExecutionContext, request: Request) -> HandlerResult:
    """Queries the shared handle directly; ctx.transaction is None here."""
    db = get_database(request)
    try:
        now = await database_time(db)
    except TxScopeError as exc:
        return HandlerResult.fail(500, exc)
    return HandlerResult.ok(_greeting(now))


router.add_api_route(
    "/tran",
    transactional(select_in_transaction),
    methods=["GET"],
    response_class=PlainTextResponse,
    responses=ERROR_RESPONSES,
    summary="Read the database clock inside a request transaction",
)
router.add_api_route(
    "/notran",
    contextual(select_without_transaction),
    methods=["GET"],
    response_class=PlainTextResponse,
    responses=ERROR_RESPONSES,
    summary="Read the database clock on a pooled connection, no transaction",
)
