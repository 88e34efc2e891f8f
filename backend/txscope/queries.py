"""
Statements shared by the sample routes.
"""

from typing import Any, Mapping, Optional, Protocol

from sqlalchemy import func, select
from sqlalchemy.engine import Row

from txscope.transaction import Statement

# Renders as now() on PostgreSQL and CURRENT_TIMESTAMP on SQLite
SELECT_NOW = select(func.now())


class RowSource(Protocol):
    async def query_row(
        self, statement: Statement, params: Optional[Mapping[str, Any]] = None
    ) -> Row: ...


async def database_time(source: RowSource) -> Any:
    """
    Ask the database for its clock.

    `source` is either a Transaction (transactional path) or the Database
    handle itself (non-transactional path). QueryError propagates.
    """
    row = await source.query_row(SELECT_NOW)
    return row[0]
