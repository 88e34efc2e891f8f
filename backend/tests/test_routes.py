"""
txscope — Route Tests
=======================

What:  Every sample endpoint end-to-end against a real SQLite database.
How:   create_app(database=sqlite_database) behind an HTTPX ASGI client.

Scenarios:
    A  transactional route runs the clock query → 200, timestamp, committed
    B  transactional route's query fails → 500 {"message"}, rolled back
    C  unwrapped route asks for the transaction → PreconditionViolation,
       logged at CRITICAL, client sees a generic 500
"""

import logging
import re
from unittest.mock import AsyncMock, MagicMock

import pytest
from starlette.responses import PlainTextResponse

from txscope.context import HandlerResult, contextual, get_transaction
from txscope.database import Database
from txscope.exceptions import QueryError
from txscope.middleware.transaction import transactional
from txscope.transaction import TransactionState

TIMESTAMP = r"\d{4}-\d{2}-\d{2}"


@pytest.fixture
def app(make_app, sqlite_database):
    return make_app(sqlite_database)


class TestSampleRoutes:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["/api/hello/context1", "/api/hello/context2"])
    async def test_hello_world(self, app, make_client, path):
        client = await make_client(app)

        response = await client.get(path)

        assert response.status_code == 200
        assert response.text == "hello, world!"
        assert response.headers["content-type"].startswith("text/plain")

    @pytest.mark.asyncio
    async def test_echo_server(self, app, make_client):
        client = await make_client(app)

        response = await client.get("/api/echo/server")

        assert response.status_code == 200
        assert response.text == "hello, server!"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["/api/echo/database", "/api/hello/context3"])
    async def test_hello_database(self, app, make_client, path):
        client = await make_client(app)

        response = await client.get(path)

        assert response.status_code == 200
        assert re.fullmatch(rf"hello, database! at {TIMESTAMP}.*", response.text)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["/api/select/tran", "/api/select/notran"])
    async def test_select(self, app, make_client, path):
        client = await make_client(app)

        response = await client.get(path)

        assert response.status_code == 200
        assert re.fullmatch(rf"hello, from database at {TIMESTAMP}.* !", response.text)

    @pytest.mark.asyncio
    async def test_post_not_allowed(self, app, make_client):
        client = await make_client(app)
        response = await client.post("/api/select/tran")
        assert response.status_code == 405


class TestTransactionScenarios:

    @pytest.mark.asyncio
    async def test_scenario_a_commits(self, app, make_client):
        seen = []

        async def handler(ctx, request):
            tx = get_transaction(ctx)
            seen.append(tx)
            row = await tx.query_row("SELECT CURRENT_TIMESTAMP")
            return HandlerResult.ok(PlainTextResponse(f"now: {row[0]}"))

        app.add_api_route("/t/now", transactional(handler), methods=["GET"])
        client = await make_client(app)

        response = await client.get("/t/now")

        assert response.status_code == 200
        assert re.fullmatch(rf"now: {TIMESTAMP}.*", response.text)
        assert seen[0].state is TransactionState.COMMITTED

    @pytest.mark.asyncio
    async def test_scenario_b_rolls_back(self, app, make_client):
        seen = []

        async def handler(ctx, request):
            tx = get_transaction(ctx)
            seen.append(tx)
            try:
                await tx.query_row("SELEC now()")
            except QueryError as exc:
                return HandlerResult.fail(500, exc)
            return HandlerResult.ok(PlainTextResponse("unreachable"))

        app.add_api_route("/t/broken", transactional(handler), methods=["GET"])
        client = await make_client(app)

        response = await client.get("/t/broken")

        assert response.status_code == 500
        body = response.json()
        assert set(body) == {"message"}
        assert "syntax error" in body["message"]
        assert seen[0].state is TransactionState.ROLLED_BACK

    @pytest.mark.asyncio
    async def test_scenario_c_unwrapped_route(self, app, make_client, caplog):
        reached = []

        async def handler(ctx, request):
            get_transaction(ctx)
            reached.append(True)
            return HandlerResult.ok(PlainTextResponse("should not be sent"))

        app.add_api_route("/t/unwrapped", contextual(handler), methods=["GET"])
        client = await make_client(app)

        with caplog.at_level(logging.CRITICAL, logger="txscope.middleware.recover"):
            response = await client.get("/t/unwrapped")

        assert reached == []
        assert response.status_code == 500
        assert response.json() == {"message": "internal error"}
        assert any(
            record.levelno == logging.CRITICAL and "Precondition violated" in record.getMessage()
            for record in caplog.records
        )


class TestHealth:

    @pytest.mark.asyncio
    async def test_healthy(self, app, make_client):
        client = await make_client(app)

        response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"

    @pytest.mark.asyncio
    async def test_unhealthy(self, make_app, mock_database, make_client):
        mock_database.ping = AsyncMock(return_value=False)
        client = await make_client(make_app(mock_database))

        response = await client.get("/health")

        assert response.status_code == 503
        assert response.json()["database"] == "disconnected"


class TestNonTransactionalPath:

    @pytest.mark.asyncio
    async def test_select_notran_reports_query_errors(self, make_app, mock_database, make_client):
        mock_database.query_row = AsyncMock(side_effect=QueryError(message="relation does not exist"))
        client = await make_client(make_app(mock_database))

        response = await client.get("/api/select/notran")

        assert response.status_code == 500
        assert response.json() == {"message": "relation does not exist"}
        mock_database.begin_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_select_notran_reports_refused_connection(self, make_app, make_client):
        engine = MagicMock()
        engine.connect = MagicMock(side_effect=ConnectionRefusedError(111, "Connection refused"))
        client = await make_client(make_app(Database(engine)))

        response = await client.get("/api/select/notran")

        assert response.status_code == 500
        assert response.json() == {"message": "[Errno 111] Connection refused"}
