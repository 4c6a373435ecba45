"""
Maps service errors to HTTP responses.

ConnectServiceError subclasses carry their own status code. Body validation
failures are reported as 400. Anything else is logged and returned as 500.
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.db.helpers import DatabaseError
from app.infrastructure.observability.logging import get_logger
from app.services.errors import ConnectServiceError

logger = get_logger(__name__)


async def service_error_handler(request: Request, exc: ConnectServiceError) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "Service error",
        path=request.url.path,
        error_type=type(exc).__name__,
        status_code=exc.status_code,
        error=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")} for error in exc.errors()
    ]
    logger.info("Request validation failed", path=request.url.path, errors=errors)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid request", "errors": errors},
    )


async def database_error_handler(request: Request, exc: DatabaseError) -> JSONResponse:
    logger.error(
        "Database error",
        path=request.url.path,
        operation=exc.operation,
        error=str(exc),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Database unavailable"},
    )


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", path=request.url.path, error_type=type(exc).__name__)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ConnectServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(DatabaseError, database_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
