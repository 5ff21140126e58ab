"""API dependencies and exception handlers."""

import logging
import uuid
from contextvars import ContextVar
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from insighter_server.models import ErrorResponse

logger = logging.getLogger(__name__)

# Context variable for request ID
request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")


def get_request_id() -> str:
    """Get current request ID from context."""
    return request_id_ctx.get()


class InsighterException(Exception):
    """Base exception for Insighter Server."""

    def __init__(
        self,
        error_code: str,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.error_code = error_code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class BadRequestError(InsighterException):
    """Malformed or invalid request."""

    def __init__(self, message: str, error_code: str = "BAD_REQUEST", details: dict[str, Any] | None = None):
        super().__init__(error_code, message, status.HTTP_400_BAD_REQUEST, details)


class UnauthorizedError(InsighterException):
    """Missing or invalid session."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__("UNAUTHORIZED", message, status.HTTP_401_UNAUTHORIZED)


class ForbiddenError(InsighterException):
    """Authenticated but not allowed."""

    def __init__(self, message: str = "Access denied"):
        super().__init__("FORBIDDEN", message, status.HTTP_403_FORBIDDEN)


class NotFoundError(InsighterException):
    """Resource not found error."""

    def __init__(self, resource: str, resource_id: str | None = None):
        super().__init__(
            error_code=f"{resource.upper().replace(' ', '_')}_NOT_FOUND",
            message=f"{resource.capitalize()} not found",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"id": resource_id} if resource_id else None,
        )


class ConflictError(InsighterException):
    """Resource already exists."""

    def __init__(self, message: str):
        super().__init__("CONFLICT", message, status.HTTP_409_CONFLICT)


class InternalError(InsighterException):
    """Server-side failure with a user-facing message."""

    def __init__(self, message: str = "Internal server error", error_code: str = "INTERNAL_ERROR"):
        super().__init__(error_code, message, status.HTTP_500_INTERNAL_SERVER_ERROR)


def error_response(
    status_code: int,
    message: str,
    error_code: str,
    details: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Render the standard ``{"error": ...}`` JSON body."""
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message, error_code=error_code, details=details).model_dump(),
        headers=headers,
    )


_HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
}


def setup_exception_handlers(app: FastAPI) -> None:
    """Setup global exception handlers for the FastAPI app.

    Args:
        app: FastAPI application instance.
    """

    @app.exception_handler(InsighterException)
    async def insighter_exception_handler(request: Request, exc: InsighterException) -> JSONResponse:
        """Handle Insighter exceptions."""
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message} (request {get_request_id()})")
        return error_response(exc.status_code, exc.message, exc.error_code, exc.details)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Handle HTTP exceptions raised by FastAPI and security schemes."""
        return error_response(
            exc.status_code,
            str(exc.detail),
            _HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Map request validation failures to 400."""
        errors = [
            {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        return error_response(
            status.HTTP_400_BAD_REQUEST,
            "Invalid request parameters",
            "VALIDATION_ERROR",
            details={"errors": errors},
        )

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        """Handle slowapi rate limit violations."""
        return error_response(
            status.HTTP_429_TOO_MANY_REQUESTS,
            "Rate limit exceeded",
            "RATE_LIMITED",
            details={"limit": str(exc.detail)},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception(f"Unhandled error on {request.method} {request.url.path} (request {get_request_id()})")
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error",
            "INTERNAL_ERROR",
        )


async def request_id_middleware(request: Request, call_next):
    """Middleware to generate and track request IDs.

    Args:
        request: FastAPI request object.
        call_next: Next middleware/handler in chain.

    Returns:
        Response with X-Request-ID header.
    """
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))

    token = request_id_ctx.set(request_id)

    try:
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
    finally:
        request_id_ctx.reset(token)
