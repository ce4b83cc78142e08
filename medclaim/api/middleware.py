"""Middleware and error handling for the registry API.

Registry errors become JSON responses ``{"error": kind, "detail": message}``
with a status code chosen by error kind. Anything unexpected becomes a 500
without internal details.
"""

import logging
import time
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from medclaim.domain.ports import (
    AlreadyProcessedError,
    InvalidInputError,
    NotFoundError,
    RegistryError,
    StorageError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES: dict[type, int] = {
    UnauthorizedError: 403,
    NotFoundError: 404,
    AlreadyProcessedError: 409,
    InvalidInputError: 400,
    StorageError: 500,
}


def status_code_for(error: RegistryError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES.items():
        if isinstance(error, error_type):
            return status_code
    return 500


async def registry_error_handler(request: Request, exc: RegistryError) -> JSONResponse:
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} - {exc.kind}: {exc.message}")
        # Storage internals are logged, not returned
        detail = "A storage error occurred. Please check logs for details."
    else:
        logger.info(f"{request.method} {request.url.path} - {exc.kind}: {exc.message}")
        detail = exc.message
    return JSONResponse(status_code=status_code, content={"error": exc.kind, "detail": detail})


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    detail = f"{location}: {first.get('msg', 'invalid request')}" if location else "Invalid request"
    logger.info(f"{request.method} {request.url.path} - validation failed: {detail}")
    return JSONResponse(
        status_code=400,
        content={"error": InvalidInputError.kind, "detail": detail},
    )


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for request/response logging."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Log request and response details and add ``X-Process-Time``."""
        start_time = time.time()
        caller = request.headers.get("x-caller", "-")

        logger.info(f"{request.method} {request.url.path} - Caller: {caller}")

        response = await call_next(request)
        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = f"{process_time:.3f}"

        logger.info(
            f"{request.method} {request.url.path} - "
            f"Status: {response.status_code} - "
            f"Time: {process_time:.3f}s"
        )
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware for global error handling.

    Client mistakes arrive as ``RegistryError`` or ``RequestValidationError``
    and are answered by the exception handlers; anything reaching this
    middleware (configuration errors included) is a server fault.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Unexpected error: {str(e)}", exc_info=True)
            return JSONResponse(
                status_code=500,
                content={
                    "error": "Internal server error",
                    "detail": "An unexpected error occurred. Please check logs for details."
                }
            )


def setup_middleware(app: FastAPI) -> None:
    """Install exception handlers and middleware.

    Middleware Order:
        1. ErrorHandlingMiddleware - Handles unexpected errors
        2. LoggingMiddleware - Logs requests/responses (outermost)
    """
    app.add_exception_handler(RegistryError, registry_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(LoggingMiddleware)
