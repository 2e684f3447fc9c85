"""
Health Metrics Tracker Backend — Error Response Builder
=========================================================

What:  Builds the JSON error envelope shared by every failure path.
Why:   Exception handlers and middleware both answer errors, and middleware
       responses never pass through FastAPI's exception handlers. Both call
       error_response() so the client sees one shape.

Envelope:
    {timestamp, status, error, message, path, requestId?, fieldErrors?}
"""

from datetime import datetime, timezone
from typing import Dict, Optional

from fastapi.responses import JSONResponse
from starlette.requests import Request

from app.middleware.request_id import request_id_var
from app.schemas.common import ErrorResponse


def error_response(
    request: Request,
    status_code: int,
    error: str,
    message: str,
    field_errors: Optional[Dict[str, str]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    body = ErrorResponse(
        timestamp=datetime.now(timezone.utc),
        status=status_code,
        error=error,
        message=message,
        path=request.url.path,
        request_id=request_id_var.get("") or None,
        field_errors=field_errors,
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True, exclude_none=True),
        headers=headers,
    )
