"""
txscope — Test Configuration (conftest.py)
============================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy (all function-scoped):
    ├── connection_factory: Builds mock AsyncConnections (no real DB needed)
    ├── mock_database: Database handle whose transactions run on mock connections
    ├── sqlite_database: Real Database handle on a throwaway SQLite file (aiosqlite)
    ├── make_app: Builds a full app around a given Database handle
    └── make_client: HTTPX AsyncClient for a given app
"""

import os
import tempfile
from typing import List
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from starlette.requests import Request

# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

# Override settings BEFORE any txscope import: the module-level app in
# txscope.main builds an engine from these values.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///" + os.path.join(
    tempfile.mkdtemp(prefix="txscope_test_"), "test.db"
)
os.environ["LOG_LEVEL"] = "WARNING"

from txscope.config import Settings  # noqa: E402
from txscope.database import Database  # noqa: E402
from txscope.main import create_app  # noqa: E402
from txscope.transaction import Transaction  # noqa: E402


# ══════════════════════════════════════════════════════════════════════════
# Mock Database
# ══════════════════════════════════════════════════════════════════════════

def make_mock_connection():
    """
    A mock AsyncConnection.

    connection.begin() returns `connection.sa_transaction`, whose commit()
    and rollback() are AsyncMocks the tests assert on.
    """
    sa_transaction = AsyncMock()
    connection = AsyncMock()
    connection.sa_transaction = sa_transaction
    connection.begin = AsyncMock(return_value=sa_transaction)
    connection.execute = AsyncMock()
    connection.close = AsyncMock()
    return connection


@pytest.fixture
def mock_connection():
    return make_mock_connection()


@pytest.fixture
def mock_database():
    """
    Database handle whose begin_transaction() yields a real Transaction
    over a fresh mock connection on every call.

    Usage:
        mock_database.connections[0].sa_transaction.commit.assert_awaited_once()
    """
    connections: List[AsyncMock] = []
    transactions: List[Transaction] = []

    async def begin_transaction():
        connection = make_mock_connection()
        connections.append(connection)
        transaction = await Transaction(connection).begin()
        transactions.append(transaction)
        return transaction

    database = MagicMock(spec=Database)
    database.begin_transaction = AsyncMock(side_effect=begin_transaction)
    database.ping = AsyncMock(return_value=True)
    database.dispose = AsyncMock()
    database.connections = connections
    database.transactions = transactions
    return database


# ══════════════════════════════════════════════════════════════════════════
# Real Database (SQLite)
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def sqlite_database(tmp_path):
    """
    A real Database on a per-test SQLite file.

    SQLAlchemy renders func.now() as CURRENT_TIMESTAMP on SQLite, so the
    sample routes run unchanged against it.
    """
    config = Settings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'txscope.db'}")
    database = Database.from_settings(config)
    yield database
    await database.dispose()


# ══════════════════════════════════════════════════════════════════════════
# App + Client
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def make_app():
    def _make(database):
        return create_app(database=database)
    return _make


@pytest_asyncio.fixture
async def make_client():
    """
    Returns an async factory: `client = await make_client(app)`.
    Clients are closed after the test.
    """
    clients: List[AsyncClient] = []

    async def _make(app) -> AsyncClient:
        client = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
        clients.append(client)
        return client

    yield _make
    for client in clients:
        await client.aclose()


@pytest.fixture
def make_request():
    """Bare Starlette Request for calling endpoints without the HTTP stack."""
    def _make(path: str = "/", request_id: str = "test-rid") -> Request:
        request = Request({
            "type": "http",
            "method": "GET",
            "path": path,
            "headers": [],
            "query_string": b"",
        })
        request.state.request_id = request_id
        return request
    return _make
