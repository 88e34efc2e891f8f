# Middleware package init
"""
txscope — Middleware Package
==============================

Two kinds of wrapping live here.

Cross-cutting Starlette middleware, applied to every request:
    Request → [Request ID] → [Logging] → [Recover] → [Content-Type] → Router

    1. Request ID first: every later log line can carry it
    2. Logging: sees the final status, including the 500 produced by Recover
    3. Recover: converts escaped exceptions to {"message": "internal error"}
    4. Content-Type: defaults the header on handler responses

Per-route wrapping, applied at registration (transaction.py):
    transactional(handler) opens one transaction per request, hands it to
    the handler through the ExecutionContext and commits or rolls back.
"""
