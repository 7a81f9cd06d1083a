"""Global error handling.

Every domain exception, validation error and unexpected failure is returned
as the same JSON shape:
``{error_code, message, user_message, suggestion, retry_allowed}``.
"""

import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from finsync.config import settings
from finsync.core.errors import ERROR_CATALOG
from finsync.core.exceptions import FinanceSyncError

logger = logging.getLogger(__name__)


async def handle_finance_sync_error(request: Request, exc: FinanceSyncError) -> JSONResponse:
    """Handle domain exceptions using the error catalog.

    Args:
        request: The incoming request
        exc: The domain exception, carrying its catalog code and HTTP status

    Returns:
        JSONResponse with error details from catalog
    """
    error_info = ERROR_CATALOG.get(exc.error_code, {})

    # Details can hold provider messages; only log them in debug.
    extra = {"error_code": exc.error_code, "path": request.url.path, "method": request.method}
    if settings.debug:
        extra["details"] = exc.details

    if exc.http_status >= 500:
        logger.error(f"Domain error: {exc.error_code}", extra=extra)
    else:
        logger.warning(f"Domain error: {exc.error_code}", extra=extra)

    return JSONResponse(
        status_code=exc.http_status,
        content={
            "error_code": exc.error_code,
            "message": error_info.get("message", str(exc)),
            "user_message": error_info.get("user_message", "An error occurred"),
            "suggestion": error_info.get("suggestion", "Please try again later"),
            "retry_allowed": error_info.get("retry_allowed", False),
        },
    )


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request body/query validation errors.

    Args:
        request: The incoming request
        exc: The validation error

    Returns:
        JSONResponse with one "field: message" entry per failed field
    """
    errors = exc.errors()
    error_messages = []

    for error in errors:
        field = ".".join(str(x) for x in error.get("loc", []))
        msg = error.get("msg", "Invalid value")
        error_messages.append(f"{field}: {msg}")

    # Never log input values: request bodies can carry bank credentials.
    logger.warning(
        f"Validation error on {request.url.path}",
        extra={"path": request.url.path, "method": request.method, "fields": len(errors)},
    )

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error_code": "VAL_000",
            "message": " | ".join(error_messages),
            "user_message": "Invalid input data",
            "suggestion": "Please check your input and try again",
            "retry_allowed": True,
        },
    )


async def handle_integrity_error(request: Request, exc: IntegrityError) -> JSONResponse:
    """Handle database integrity errors.

    Args:
        request: The incoming request
        exc: The integrity error

    Returns:
        JSONResponse with DB_002 for duplicates, DB_001 otherwise
    """
    # Do not log str(exc): it can include SQL + bound parameters.
    if settings.debug:
        logger.exception(
            f"Database integrity error on {request.url.path}",
            extra={"path": request.url.path, "method": request.method},
        )
    else:
        logger.error(
            f"Database integrity error on {request.url.path}",
            extra={"path": request.url.path, "method": request.method},
        )

    error_msg = str(exc).lower()
    if "unique" in error_msg or "duplicate" in error_msg:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={
                "error_code": "DB_002",
                "message": "Resource already exists",
                "user_message": "This record already exists",
                "suggestion": "Please check if the record was already created",
                "retry_allowed": False,
            },
        )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "DB_001",
            "message": "Database operation failed",
            "user_message": "A database error occurred",
            "suggestion": "Please try again later",
            "retry_allowed": True,
        },
    )


async def handle_generic_error(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions without exposing internals.

    Args:
        request: The incoming request
        exc: The unexpected exception

    Returns:
        JSONResponse with generic error message
    """
    extra = {"error_type": type(exc).__name__, "path": request.url.path, "method": request.method}
    if settings.debug:
        logger.exception(f"Unexpected error on {request.url.path}", extra=extra)
    else:
        logger.error(f"Unexpected error on {request.url.path}", extra=extra)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "SYS_001",
            "message": "Internal server error",
            "user_message": "An unexpected error occurred",
            "suggestion": "Please try again later or contact support",
            "retry_allowed": True,
        },
    )
