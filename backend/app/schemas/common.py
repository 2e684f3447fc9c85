"""
Health Metrics Tracker Backend — Shared Schema Building Blocks
================================================================

What:  Base model, decimal serialization, and the envelopes shared by every
       resource (errors, health).
Why:   The React client speaks camelCase JSON and expects decimals as JSON
       numbers; both rules live here once instead of in every schema.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel


def decimal_to_number(value: Decimal) -> Union[int, float]:
    """
    Render a Decimal as a JSON number.

    Integral values become ints (50.0000 → 50) so stored counts round-trip
    exactly; everything else becomes a float.
    """
    if value == value.to_integral_value():
        return int(value)
    return float(value)


# Decimal in Python, number in JSON (Pydantic would otherwise emit a string)
JsonDecimal = Annotated[
    Decimal,
    PlainSerializer(decimal_to_number, return_type=Union[int, float], when_used="json"),
]


class CamelModel(BaseModel):
    """
    Base for all API schemas.

    Fields are declared in snake_case and exposed in camelCase.
    populate_by_name lets tests and services build models with either form.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ErrorResponse(CamelModel):
    """
    What:  Standardized error envelope for all API errors.

    Example:
        {
            "timestamp": "2026-01-15T12:00:00Z",
            "status": 409,
            "error": "Conflict",
            "message": "Data already exists for facility 'Athens General Hospital', ...",
            "path": "/api/data-values",
            "requestId": "a1b2c3d4"
        }
    """
    timestamp: datetime = Field(description="When the error occurred (UTC)")
    status: int = Field(description="HTTP status code")
    error: str = Field(description="Short error label, e.g. 'Not Found'")
    message: str = Field(description="Human-readable error description")
    path: str = Field(description="Request path that produced the error")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")
    field_errors: Optional[Dict[str, str]] = Field(
        default=None,
        description="Per-field messages for request schema failures",
    )


class HealthResponse(CamelModel):
    """
    What:  Health check response showing service and database status.
    Who:   Returned by GET /health for monitoring and load balancer probes.
    """
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")
