"""
txscope — Transaction Handle
==============================

What:  One open database transaction bound to one pooled connection.
Why:   The request wrapper needs a handle whose lifecycle it can drive
       deterministically: begin once, finalize exactly once, release always.
How:   Wraps a SQLAlchemy AsyncConnection and the AsyncTransaction started
       on it, tracking an explicit state machine.

State machine:
    NOT_STARTED ──begin()──▶ OPEN ──commit()───▶ COMMITTED
                               └────rollback()─▶ ROLLED_BACK

    COMMITTED and ROLLED_BACK are terminal. commit() and rollback() on a
    terminal handle are no-ops, so the wrapper's cleanup path can run
    unconditionally after a normal finalization.

Ownership:
    The wrapper owns the handle. Handlers borrow it through the
    ExecutionContext and only call query_row().
"""

import logging
from enum import Enum
from typing import Any, Mapping, Optional, Union

from sqlalchemy import text
from sqlalchemy.engine import Row
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncTransaction
from sqlalchemy.sql.expression import Executable

from txscope.exceptions import FinalizationError, PreconditionViolation, QueryError

logger = logging.getLogger(__name__)

# A raw SQL string or any SQLAlchemy executable (select(), text(), ...)
Statement = Union[str, Executable]


def as_executable(statement: Statement) -> Executable:
    """Wraps raw SQL strings in text(); passes SQLAlchemy constructs through."""
    if isinstance(statement, str):
        return text(statement)
    return statement


def describe_driver_error(exc: BaseException) -> str:
    """
    Returns the driver's own error text.

    SQLAlchemy's DBAPIError.__str__ appends the SQL and a background link;
    the original driver exception holds just the server message.
    """
    orig = getattr(exc, "orig", None)
    if orig is not None:
        return str(orig)
    return str(exc)


class TransactionState(str, Enum):
    NOT_STARTED = "not_started"
    OPEN = "open"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class Transaction:
    """
    Handle to a single-connection database transaction.

    Created by Database.begin_transaction(); never constructed by handlers.
    """

    def __init__(self, connection: AsyncConnection):
        self._connection = connection
        self._transaction: Optional[AsyncTransaction] = None
        self._state = TransactionState.NOT_STARTED
        self._released = False

    def __repr__(self) -> str:
        return f"<Transaction state={self._state.value} at 0x{id(self):x}>"

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is TransactionState.OPEN

    async def begin(self) -> "Transaction":
        """Issues BEGIN on the underlying connection."""
        if self._state is not TransactionState.NOT_STARTED:
            raise PreconditionViolation(f"Transaction already begun (state={self._state.value})")
        self._transaction = await self._connection.begin()
        self._state = TransactionState.OPEN
        return self

    async def query_row(
        self,
        statement: Statement,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Row:
        """
        Execute a statement inside this transaction and return its first row.

        Raises:
            QueryError: The statement failed, returned no rows, or the
                        transaction is no longer open.
        """
        if self._state is not TransactionState.OPEN:
            raise QueryError(
                message=f"Transaction is not open (state={self._state.value})",
                statement=str(statement),
            )
        try:
            result = await self._connection.execute(as_executable(statement), params)
        except SQLAlchemyError as exc:
            raise QueryError(message=describe_driver_error(exc), statement=str(statement)) from exc

        row = result.first()
        if row is None:
            raise QueryError(message="no rows in result set", statement=str(statement))
        return row

    async def commit(self) -> None:
        """
        OPEN → COMMITTED. No-op when already finalized.

        A failed COMMIT leaves nothing to keep: the server has aborted the
        transaction, so the handle moves to ROLLED_BACK before raising.
        """
        if self._state is not TransactionState.OPEN:
            return
        try:
            await self._transaction.commit()
        except SQLAlchemyError as exc:
            self._state = TransactionState.ROLLED_BACK
            raise FinalizationError("commit", message=describe_driver_error(exc)) from exc
        self._state = TransactionState.COMMITTED
        logger.debug("Transaction committed: %r", self)

    async def rollback(self) -> None:
        """OPEN → ROLLED_BACK. No-op when already finalized."""
        if self._state is not TransactionState.OPEN:
            return
        self._state = TransactionState.ROLLED_BACK
        try:
            await self._transaction.rollback()
        except SQLAlchemyError as exc:
            raise FinalizationError("rollback", message=describe_driver_error(exc)) from exc
        logger.debug("Transaction rolled back: %r", self)

    async def close(self) -> None:
        """
        Roll back if still OPEN, then return the connection to the pool.

        Safe to call any number of times; only the first call does work.
        """
        if self._released:
            return
        self._released = True
        try:
            await self.rollback()
        finally:
            try:
                await self._connection.close()
            except SQLAlchemyError as exc:
                raise FinalizationError("release", message=describe_driver_error(exc)) from exc
