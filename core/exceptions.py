"""
Exception types and global exception handlers for the FastAPI application.
"""
import traceback
from typing import Optional

from fastapi import Request, HTTPException, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
import structlog

logger = structlog.get_logger("exceptions")


class APIException(Exception):
    """Base API exception class."""

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = "Internal server error",
        headers: Optional[dict] = None,
    ):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail
        self.headers = headers or {}


class ValidationException(APIException):
    """Bad input shape or length."""

    def __init__(self, detail: str = "Validation failed"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class AuthenticationException(APIException):
    """Missing or unusable credentials."""

    def __init__(self, detail: str = "Not authorized"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class InvalidTokenException(AuthenticationException):
    """Token missing, malformed, expired or with a bad signature."""

    def __init__(self, detail: str = "Not authorized, token failed"):
        super().__init__(detail=detail)


class UserNotFoundException(AuthenticationException):
    """Token is valid but its user no longer exists."""

    def __init__(self, detail: str = "Not authorized, user not found"):
        super().__init__(detail=detail)


class AuthorizationException(APIException):
    """Authenticated but not permitted."""

    def __init__(self, detail: str = "Insufficient permissions"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class ResourceNotFoundException(APIException):
    """Resource not found exception."""

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class AIServiceException(APIException):
    """AI provider failure. Raised and absorbed inside the content generator."""

    def __init__(self, detail: str = "AI service error", provider: Optional[str] = None):
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)
        self.provider = provider


class DatabaseException(APIException):
    """Database-related exception."""

    def __init__(self, detail: str = "Database operation failed"):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


def error_response(status_code: int, error_type: str, message: str, headers: dict = None, **extra) -> JSONResponse:
    error = {"type": error_type, "status_code": status_code}
    error.update(extra)
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder({"message": message, "error": error}),
        headers=headers,
    )


def _request_context(request: Request) -> dict:
    return {
        "path": str(request.url.path),
        "method": request.method,
        "client_host": request.client.host if request.client else None,
    }


async def api_exception_handler(request: Request, exc: APIException) -> JSONResponse:
    """Handle custom API exceptions."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "API exception occurred",
        exception_type=type(exc).__name__,
        status_code=exc.status_code,
        detail=exc.detail,
        **_request_context(request),
    )
    return error_response(exc.status_code, type(exc).__name__, exc.detail, headers=exc.headers)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTP exceptions."""
    logger.warning(
        "HTTP exception occurred",
        status_code=exc.status_code,
        detail=exc.detail,
        **_request_context(request),
    )
    return error_response(exc.status_code, "HTTPException", str(exc.detail), headers=exc.headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report request body/query validation failures as 400."""
    errors = exc.errors()
    logger.warning("Validation error occurred", errors=str(errors), **_request_context(request))
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{location}: {first.get('msg')}" if location else first.get("msg", "Request validation failed")
    return error_response(
        status.HTTP_400_BAD_REQUEST, "ValidationError", message, details=errors
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handle SQLAlchemy database exceptions."""
    logger.error(
        "Database error occurred",
        exception_type=type(exc).__name__,
        error_detail=str(exc),
        **_request_context(request),
    )
    if isinstance(exc, IntegrityError):
        return error_response(
            status.HTTP_400_BAD_REQUEST, "DatabaseError", "Resource already exists or violates a constraint"
        )
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "DatabaseError", str(exc))


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all other uncaught exceptions."""
    logger.error(
        "Unhandled exception occurred",
        exception_type=type(exc).__name__,
        error_detail=str(exc),
        traceback=traceback.format_exc(),
        **_request_context(request),
    )
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR, "InternalServerError", str(exc) or "Server error"
    )


def setup_exception_handlers(app):
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(APIException, api_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
