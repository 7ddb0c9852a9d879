"""
FastAPI exception handlers

Every error answers with the same body: {"error", "message", "details", "path"}.
"""

import logging
import traceback
from typing import Any, Dict, Union
from fastapi import Request, HTTPException, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import (
    SQLAlchemyError,
    IntegrityError,
    OperationalError,
    TimeoutError,
    DisconnectionError,
)

from gymapp.core.config import DEBUG, DB_POOL_TIMEOUT
from gymapp.core.exceptions import (
    BaseAppException,
    DatabaseError,
    DatabaseConnectionError,
    DatabaseTimeoutError,
    DatabaseIntegrityError,
)

logger = logging.getLogger(__name__)


def error_response(
    request: Request,
    status_code: int,
    error: str,
    message: str,
    details: Dict[str, Any] = None,
    headers: Dict[str, str] = None,
) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        headers = {**(headers or {}), "X-Request-ID": request_id}

    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": message,
            "details": details or {},
            "path": request.url.path,
        },
        headers=headers,
    )


async def app_exception_handler(
    request: Request, exc: BaseAppException
) -> JSONResponse:
    # Client mistakes are warnings, our own failures are errors
    log_level = logging.WARNING if exc.status_code < 500 else logging.ERROR
    logger.log(
        log_level,
        f"{exc.error_code}: {exc.message}",
        extra={
            "error_code": exc.error_code,
            "status_code": exc.status_code,
            "details": exc.details,
            "path": request.url.path,
            "method": request.method,
        },
    )

    return error_response(
        request, exc.status_code, exc.error_code, exc.message, exc.details
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Starlette errors: unknown routes, wrong methods, missing bearer token"""
    logger.warning(
        f"HTTP {exc.status_code} on {request.method} {request.url.path}: {exc.detail}"
    )
    return error_response(
        request,
        exc.status_code,
        "HTTP_ERROR",
        str(exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request, exc: Union[RequestValidationError, PydanticValidationError]
) -> JSONResponse:
    fields = [
        {
            "field": " -> ".join(str(loc) for loc in error.get("loc", [])),
            "message": error.get("msg", "Validation error"),
            "type": error.get("type", "value_error"),
        }
        for error in exc.errors()
    ]

    logger.warning(
        f"Rejected {request.method} {request.url.path}: {len(fields)} invalid field(s)",
        extra={"errors": fields, "path": request.url.path},
    )

    return error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "VALIDATION_ERROR",
        f"Validation failed for {len(fields)} field(s)",
        {"fields": fields},
    )


def to_database_error(exc: SQLAlchemyError) -> BaseAppException:
    """Map a SQLAlchemy error onto the application taxonomy"""
    if isinstance(exc, IntegrityError):
        constraint = getattr(exc.orig, "constraint_name", None) or "unknown"
        return DatabaseIntegrityError(constraint)

    if isinstance(exc, (OperationalError, DisconnectionError)):
        return DatabaseConnectionError("Database connection lost")

    if isinstance(exc, TimeoutError):
        return DatabaseTimeoutError("connection_pool", DB_POOL_TIMEOUT)

    # Persistence internals are never surfaced to clients
    return DatabaseError()


async def database_exception_handler(
    request: Request, exc: SQLAlchemyError
) -> JSONResponse:
    logger.error(
        f"Database error on {request.method} {request.url.path}: {type(exc).__name__}",
        extra={"exception": str(exc), "traceback": traceback.format_exc()},
    )
    return await app_exception_handler(request, to_database_error(exc))


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}: {str(exc)}",
        extra={"traceback": traceback.format_exc()},
    )

    details = (
        {"exception_type": type(exc).__name__, "traceback": traceback.format_exc()}
        if DEBUG
        else {}
    )
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_SERVER_ERROR",
        "An unexpected error occurred",
        details,
    )


def setup_exception_handlers(app):
    app.add_exception_handler(BaseAppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(PydanticValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info("Exception handlers registered")
