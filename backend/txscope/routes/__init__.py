# Routes package init
"""
txscope — API Routes Package
==============================

Route Inventory:
    - echo.py:    GET /api/echo/server, /api/echo/database
    - hello.py:   GET /api/hello/context1, /context2, /context3
    - select.py:  GET /api/select/tran, /api/select/notran
    - health.py:  GET /health

Handlers that take an ExecutionContext are registered through one of two
bindings, which is where a route asks for (or declines) a transaction:
    contextual(handler)     no transaction
    transactional(handler)  one transaction per request
"""
