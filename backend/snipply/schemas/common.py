"""
Snipply Backend — Shared Schema Pieces
========================================

What:  Base model with the camelCase wire format, plus the generic message,
       error and health payloads.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Base for every API schema.

    - alias_generator=to_camel: `is_public` is sent as `isPublic`
    - populate_by_name: snake_case keys are accepted on input too
    - from_attributes: response models validate straight from ORM rows
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class MessageResponse(BaseModel):
    """Plain acknowledgement, e.g. {"message": "Snippet deleted successfully"}."""
    message: str = Field(description="Human-readable result")


class ErrorResponse(BaseModel):
    """
    Error format shared by every endpoint.

    Example:
        {
            "error": "validation_error",
            "message": "Username already exists",
            "details": {"field": "username"},
            "request_id": "1f0c9a2b"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    storage: str = Field(description="Active storage backend: database, memory")
    database: str = Field(description="Database connectivity: connected, disconnected, unused")
    uptime_seconds: float = Field(description="Seconds since service started")
