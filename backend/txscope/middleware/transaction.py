"""
txscope — Transaction-Scoped Execution Wrapper
================================================

What:  Runs a handler inside exactly one database transaction per request.
Why:   Handlers get a consistent snapshot and all-or-nothing writes without
       managing BEGIN/COMMIT/ROLLBACK themselves.
How:   Begin → build context → invoke handler → commit or roll back →
       render. Release happens in a `finally` so the transaction is rolled
       back and the connection returned even if the handler raises or the
       request is cancelled.
Who:   Applied per route at registration: transactional(handler).

Request flow:
    ┌──────────────┐   fail    ┌─────────────────────────────┐
    │ begin tx     │──────────▶│ 500 {"message": ...}        │  handler never runs
    └──────┬───────┘           └─────────────────────────────┘
           ▼
    ┌──────────────┐  raises   ┌─────────────────────────────┐
    │ handler(ctx) │──────────▶│ rollback, release, re-raise │  → RecoverMiddleware
    └──────┬───────┘           └─────────────────────────────┘
           ▼
    error? ── yes ─▶ rollback ─▶ handler's status + {"message": error}
      │
      no ──────────▶ commit ───▶ handler's response (500 if COMMIT fails)

Precedence:
    A handler error always owns the response body. A failed ROLLBACK after
    a handler error is logged only. A failed COMMIT after a successful
    handler replaces the success body with a 500.
"""

import asyncio
import logging
from typing import Optional

from starlette.requests import Request
from starlette.responses import Response

from txscope.context import (
    Endpoint,
    ExecutionContext,
    Handler,
    error_message,
    error_response,
    render_result,
)
from txscope.database import Database, get_database
from txscope.exceptions import FinalizationError, TransactionAcquisitionError
from txscope.transaction import Transaction

logger = logging.getLogger(__name__)


async def _release(transaction: Transaction, rid: str) -> None:
    """
    Roll back (if still open) and return the connection to the pool.

    Shielded so a cancellation arriving mid-cleanup cannot leave the
    connection checked out.
    """
    try:
        await asyncio.shield(transaction.close())
    except FinalizationError as exc:
        logger.error("[%s] Transaction %s failed during release: %s", rid, exc.operation, exc.message)


def transactional(handler: Handler, database: Optional[Database] = None) -> Endpoint:
    """
    Wraps a handler so each invocation runs in its own transaction.

    Args:
        handler:  A context-carrying handler.
        database: The database handle. Defaults to request.app.state.database,
                  resolved per request.

    Returns:
        A Starlette/FastAPI endpoint taking only the Request.
    """

    async def endpoint(request: Request) -> Response:
        db = database if database is not None else get_database(request)
        ctx = ExecutionContext.for_request(request)
        rid = ctx.request_id

        # ── Acquire ──────────────────────────────────────────────────────
        try:
            transaction = await db.begin_transaction()
        except TransactionAcquisitionError as exc:
            logger.error("[%s] Could not begin transaction: %s | Context: %s", rid, exc.message, exc.context)
            return error_response(500, exc.message)

        ctx = ctx.with_transaction(transaction)

        # ── Invoke + finalize ────────────────────────────────────────────
        try:
            result = await handler(ctx, request)

            if result.failed:
                logger.warning("[%s] Handler error, rolling back: %s", rid, error_message(result.error))
                try:
                    await transaction.rollback()
                except FinalizationError as exc:
                    logger.error("[%s] Rollback failed: %s", rid, exc.message)
            else:
                try:
                    await transaction.commit()
                except FinalizationError as exc:
                    logger.error("[%s] Commit failed: %s", rid, exc.message)
                    return error_response(500, exc.message)
        finally:
            await _release(transaction, rid)

        return render_result(result)

    endpoint.__name__ = getattr(handler, "__name__", "endpoint")
    endpoint.__doc__ = handler.__doc__
    return endpoint
