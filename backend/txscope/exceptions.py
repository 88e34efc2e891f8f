"""
txscope — Custom Exception Hierarchy
======================================

What:  Defines application-specific exceptions for the transaction lifecycle.
Why:   Typed errors let the transaction wrapper decide between "report and
       roll back" and "report and keep going" without string matching.
How:   Each exception class carries a message and optional context dict.
Who:   Raised by the database handle and the transaction handle; returned
       as values by handlers; rendered by the wrapper and global handlers.

Exception Hierarchy:
    TxScopeError (base)
    ├── TransactionAcquisitionError      → 500, handler never runs
    │   ├── ConnectionPoolExhaustedError
    │   └── ConnectivityError
    ├── QueryError                       → 500, transaction rolled back
    └── FinalizationError                → logged; 500 only if nothing else failed

    PreconditionViolation (RuntimeError) → programming defect, not recoverable

Handler-level errors are returned as values inside a HandlerResult, never
raised across the handler boundary. PreconditionViolation is deliberately
outside the TxScopeError tree: nothing in the request path is allowed to
catch it as an ordinary application failure.
"""

from typing import Any, Dict, Optional


class TxScopeError(Exception):
    """
    Base exception for all txscope application errors.

    Attributes:
        message:  Human-readable description (rendered in the response body)
        context:  Additional debug info (logged, not returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class TransactionAcquisitionError(TxScopeError):
    """
    Raised when the database handle cannot produce a transaction.

    When:    Pool checkout timed out, the server refused the connection,
             or BEGIN itself failed.
    HTTP:    500 Internal Server Error. The wrapped handler is never invoked.
    """

    def __init__(
        self,
        message: str = "Could not begin a database transaction",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ConnectionPoolExhaustedError(TransactionAcquisitionError):
    """
    Raised when no pooled connection became free within db_pool_timeout.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = "Database connection pool exhausted"
        if timeout is not None:
            message = f"Database connection pool exhausted after waiting {timeout:g}s"
        ctx = context or {}
        if timeout is not None:
            ctx["timeout"] = timeout
        super().__init__(message=message, context=ctx)
        self.timeout = timeout


class ConnectivityError(TransactionAcquisitionError):
    """
    Raised when the database is unreachable (refused, reset, DNS, auth).
    """

    def __init__(
        self,
        message: str = "Database is unreachable",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class QueryError(TxScopeError):
    """
    Raised when a statement fails or returns no row.

    What:    Wraps the driver error so handlers can return it as a value.
    HTTP:    Whatever status the handler pairs it with (500 in the samples).
             The message is the underlying driver text, e.g.
             'syntax error at or near "SELEC"'.
    """

    def __init__(
        self,
        message: str = "Query failed",
        statement: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if statement:
            ctx["statement"] = statement
        super().__init__(message=message, context=ctx)
        self.statement = statement


class FinalizationError(TxScopeError):
    """
    Raised when COMMIT or ROLLBACK itself fails.

    Always logged. It becomes the response body only when the handler
    succeeded and the commit then failed; a handler error already on its
    way to the client takes precedence.
    """

    def __init__(
        self,
        operation: str = "commit",
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["operation"] = operation
        super().__init__(
            message=message or f"Transaction {operation} failed",
            context=ctx,
        )
        self.operation = operation


class PreconditionViolation(RuntimeError):
    """
    Raised when a handler asks for a transaction on a route that was not
    registered with the transaction wrapper.

    This is a programming defect. It is raised loudly and left to the
    recovery middleware, which logs it at CRITICAL.
    """
