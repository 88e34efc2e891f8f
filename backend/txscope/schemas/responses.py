"""
txscope — Pydantic Response Schemas
=====================================

What:  Response models for the JSON endpoints and the documented error shape.
Why:   FastAPI uses these for serialization and the OpenAPI document.

The transactional routes answer in plain text and are not modelled here;
their error body is ErrorResponse.
"""

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Body of every error produced by a handler, the transaction wrapper or
    the recovery middleware.

    Example:
        {"message": "syntax error at or near \\"SELEC\\""}
    """

    message: str = Field(description="Human-readable error description")


class HealthResponse(BaseModel):
    """
    What:  Aggregate service status.
    Who:   Returned by GET /health.
    """

    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")


# OpenAPI `responses=` entry for routes whose handlers can fail
ERROR_RESPONSES = {
    500: {"description": "Query, transaction or server failure", "model": ErrorResponse},
}
