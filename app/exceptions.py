# =============================================================================
# app/exceptions.py - Custom Exception Handlers
# =============================================================================
# Centralized exception handling for the API.
# Every error leaves the API as JSON: {"error": message, "code": ..., ...}
# Following the principle: "Errors should tell HOW to fix, not just WHAT failed."
# =============================================================================

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from lib.utils import ApplicationError

logger = logging.getLogger(__name__)

INVALID_REQUEST_MESSAGE = (
    "Invalid request. Specify 'address' for single processing "
    "or 'isBatch' for batch processing."
)


# =============================================================================
# Request Exceptions
# =============================================================================

class InvalidRequestError(ApplicationError):
    """Raised when the request body matches neither accepted shape."""

    def __init__(self, message: str = INVALID_REQUEST_MESSAGE, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=400,
            suggestion='Send {"address": {...}} or {"isBatch": true, "lastProcessedId": "..."}',
            details=details,
        )


# =============================================================================
# Exception Handlers
# =============================================================================

async def application_exception_handler(
    request: Request,
    exc: ApplicationError
) -> JSONResponse:
    """
    Convert ApplicationError to JSON response.

    Returns structured error with:
    - error: Human-readable message
    - code: Machine-readable error code
    - suggestion: How to fix (if available)
    - details: Additional context
    """
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """
    Handle request bodies FastAPI could not parse (bad JSON, not an object).
    """
    return JSONResponse(
        status_code=400,
        content=InvalidRequestError(details={"errors": str(exc.errors())}).to_dict()
    )
