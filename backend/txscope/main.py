"""
txscope — FastAPI Application Factory
=======================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn (txscope.main:app) and by the test suite.

Application Architecture:
    ┌──────────────────────────────────────────────────────────────┐
    │                        FastAPI App                           │
    │                                                              │
    │  Middleware Chain:                                           │
    │  ┌────────┐ ┌─────────┐ ┌─────────┐ ┌──────────────┐         │
    │  │ Req ID │→│ Logging │→│ Recover │→│ Content-Type │→ Router │
    │  └────────┘ └─────────┘ └─────────┘ └──────────────┘         │
    │                                                              │
    │  Routes (/api):                                              │
    │  echo/server      contextual      hello/context1  bare       │
    │  echo/database    transactional   hello/context2  contextual │
    │  select/tran      transactional   hello/context3  transact.  │
    │  select/notran    contextual      /health                    │
    └──────────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging, database reachability check
    Shutdown: dispose the engine (close all pooled connections)
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from txscope import __version__
from txscope.config import Settings, settings as default_settings
from txscope.database import Database
from txscope.exceptions import TxScopeError
from txscope.middleware.content_type import ContentTypeMiddleware
from txscope.middleware.logging import RequestLoggingMiddleware
from txscope.middleware.recover import RecoverMiddleware
from txscope.middleware.request_id import RequestIDMiddleware, request_id_var
from txscope.routes import echo, health, hello, select

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger once, before anything else logs.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    if level != "DEBUG":
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    config: Settings = app.state.settings
    database: Database = app.state.database

    setup_logging(config.log_level)
    logger.info("[%s] starting up", config.app_name)

    # Don't exit on failure: /health reports it and requests get 500s
    # until the database comes back.
    if await database.ping():
        logger.info("Database reachable at %s", database.engine.url.render_as_string(hide_password=True))
    else:
        logger.error(
            "Database unreachable at %s",
            database.engine.url.render_as_string(hide_password=True),
        )

    logger.info("Server ready at http://%s:%d", config.backend_host, config.backend_port)

    yield

    logger.info("[%s] shutting down", config.app_name)
    await database.dispose()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Map application errors that escape a route to the error body shape.

    Handlers behind contextual()/transactional() return their errors as
    values, so this only catches errors raised by plain FastAPI routes and
    dependencies. Anything else is left to RecoverMiddleware.
    """

    @app.exception_handler(TxScopeError)
    async def handle_txscope_error(request: Request, exc: TxScopeError):
        rid = request_id_var.get("")
        logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
        return JSONResponse(status_code=500, content={"message": exc.message})


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    database: Optional[Database] = None,
    config: Optional[Settings] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        database: Database handle to serve requests with. Built from the
                  settings when omitted; creating it opens no connection.
        config:   Settings override (defaults to the module singleton).
    """
    config = config or default_settings

    app = FastAPI(
        title="txscope",
        description="Request-scoped context and per-request database transactions.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = config
    app.state.database = database or Database.from_settings(config)

    # ── Register Middleware ───────────────────────────────────────────────
    # Middleware executes in REVERSE order of addition (last added = outermost)
    app.add_middleware(ContentTypeMiddleware, default=config.default_content_type)
    app.add_middleware(RecoverMiddleware)
    app.add_middleware(RequestLoggingMiddleware, app_name=config.app_name)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(echo.router)
    app.include_router(hello.router)
    app.include_router(select.router)
    app.include_router(health.router)

    return app


# uvicorn expects `txscope.main:app` to be importable
app = create_app()
