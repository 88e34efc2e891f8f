"""
txscope — Application Package Initializer
===========================================

Request-scoped context propagation, middleware chaining and per-request
database transactions on FastAPI.

Layers:

    ┌─────────────────────────────────────┐
    │     Routes (echo, hello, select)    │  ← handlers returning HandlerResult
    ├─────────────────────────────────────┤
    │  Context + transaction wrapper      │  ← ExecutionContext, transactional()
    ├─────────────────────────────────────┤
    │  Database / Transaction handles     │  ← async SQLAlchemy engine
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
