"""
txscope — Database Handle
===========================

What:  Async SQLAlchemy engine wrapper exposing the two access paths the
       routes need: a per-request transaction and a one-off pooled query.
Why:   Centralizes all database connection logic in one place, and turns
       driver exceptions into the application's error types.
How:   Holds a pooled AsyncEngine. begin_transaction() checks out a
       connection and issues BEGIN; query_row() borrows a connection for a
       single statement and gives it straight back.
Who:   Created by the app factory, stored on app.state.database.
When:  Engine is created once per process; connections are per-request.

Connection Pooling:
    pool_size / max_overflow / pool_timeout come from settings. A request
    waiting longer than pool_timeout for a connection gets
    ConnectionPoolExhaustedError. SQLite (used by the test suite) keeps the
    dialect's default pool.
"""

import logging
from typing import Any, Mapping, Optional

from fastapi import HTTPException, Request, status
from sqlalchemy.engine import Row
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from txscope.config import Settings
from txscope.exceptions import (
    ConnectionPoolExhaustedError,
    ConnectivityError,
    QueryError,
    TxScopeError,
)
from txscope.transaction import Statement, Transaction, as_executable, describe_driver_error

logger = logging.getLogger(__name__)


class Database:
    """
    Shared handle to the relational database.

    The engine's pool is internally synchronized; one Database instance
    serves every concurrent request.
    """

    def __init__(self, engine: AsyncEngine, pool_timeout: Optional[float] = None):
        self.engine = engine
        self.pool_timeout = pool_timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        """
        Build the engine from configuration. No connection is opened here;
        the pool fills lazily on first checkout.
        """
        options: dict = {
            "pool_pre_ping": settings.db_pool_pre_ping,
            "echo": settings.log_level == "DEBUG",
        }
        if not settings.is_sqlite:
            options.update(
                pool_size=settings.db_pool_size,
                max_overflow=settings.db_max_overflow,
                pool_timeout=settings.db_pool_timeout,
                pool_recycle=3600,
            )
        engine = create_async_engine(settings.sqlalchemy_url, **options)
        return cls(engine, pool_timeout=settings.db_pool_timeout)

    async def begin_transaction(self) -> Transaction:
        """
        Check out a connection and open a transaction on it.

        Raises:
            ConnectionPoolExhaustedError: No connection freed up in time.
            ConnectivityError: The database refused or dropped the connection,
                               or BEGIN failed.
        """
        try:
            connection = await self.engine.connect()
        except PoolTimeoutError as exc:
            raise ConnectionPoolExhaustedError(timeout=self.pool_timeout) from exc
        except (SQLAlchemyError, OSError) as exc:
            raise ConnectivityError(message=describe_driver_error(exc)) from exc

        transaction = Transaction(connection)
        try:
            return await transaction.begin()
        except (SQLAlchemyError, OSError) as exc:
            await connection.close()
            raise ConnectivityError(message=describe_driver_error(exc)) from exc

    async def query_row(
        self,
        statement: Statement,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Row:
        """
        Run one statement outside any request transaction and return the
        first row. The connection goes back to the pool immediately.
        """
        try:
            async with self.engine.connect() as connection:
                result = await connection.execute(as_executable(statement), params)
                row = result.first()
        except PoolTimeoutError as exc:
            raise ConnectionPoolExhaustedError(timeout=self.pool_timeout) from exc
        except SQLAlchemyError as exc:
            raise QueryError(message=describe_driver_error(exc), statement=str(statement)) from exc
        except OSError as exc:
            raise ConnectivityError(message=describe_driver_error(exc)) from exc

        if row is None:
            raise QueryError(message="no rows in result set", statement=str(statement))
        return row

    async def ping(self) -> bool:
        """SELECT 1 round-trip; False on any database failure."""
        try:
            await self.query_row("SELECT 1")
        except TxScopeError as exc:
            logger.warning("Database ping failed: %s", exc)
            return False
        return True

    async def dispose(self) -> None:
        """Closes all pooled connections. Called on application shutdown."""
        await self.engine.dispose()


def get_database(request: Request) -> Database:
    """FastAPI dependency resolving the Database from application state."""
    database: Optional[Database] = getattr(request.app.state, "database", None)
    if database is None:
        logger.critical(
            "Database not found in application state. "
            "This indicates a critical setup error in the application factory."
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error: database not initialized.",
        )
    return database
