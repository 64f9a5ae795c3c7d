"""
HTTP middleware: security headers, request logging, body size limit and request timeout.
"""
import asyncio
import time
import uuid

import structlog
from fastapi import Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from core.config import settings
from core.exceptions import error_response

logger = structlog.get_logger("middleware")


def _client_host(request: Request) -> str:
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to all responses."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "0"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Cross-Origin-Opener-Policy"] = "same-origin"
        response.headers["Cross-Origin-Resource-Policy"] = "same-origin"
        response.headers["X-DNS-Prefetch-Control"] = "off"

        # JSON API; the docs pages need the CDN for their assets
        csp = (
            "default-src 'self'; "
            "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
            "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
            "img-src 'self' data: https:; "
            "connect-src 'self'; "
            "frame-ancestors 'none';"
        )
        response.headers["Content-Security-Policy"] = csp
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log all incoming requests and responses."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        start_time = time.time()

        logger.info(
            "Request started",
            request_id=request_id,
            method=request.method,
            path=str(request.url.path),
            query_params=str(request.query_params),
            client_host=_client_host(request),
            user_agent=request.headers.get("User-Agent", "unknown"),
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                request_id=request_id,
                exception=str(e),
                process_time_ms=round((time.time() - start_time) * 1000, 2),
            )
            raise

        process_time_ms = round((time.time() - start_time) * 1000, 2)
        logger.info(
            "Request completed",
            request_id=request_id,
            status_code=response.status_code,
            process_time_ms=process_time_ms,
        )
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = str(process_time_ms)
        return response


class RequestSizeMiddleware(BaseHTTPMiddleware):
    """Middleware to reject bodies larger than ``max_size`` bytes by Content-Length."""

    def __init__(self, app, max_size: int):
        super().__init__(app)
        self.max_size = max_size

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        content_length = request.headers.get("Content-Length")
        if content_length and content_length.isdigit() and int(content_length) > self.max_size:
            logger.warning(
                "Request body too large",
                content_length=int(content_length),
                max_size=self.max_size,
                client_host=_client_host(request),
            )
            return error_response(
                status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                "RequestTooLarge",
                f"Request body too large. Maximum size: {self.max_size} bytes",
            )

        return await call_next(request)


class RequestTimeoutMiddleware(BaseHTTPMiddleware):
    """Middleware to enforce request timeout."""

    def __init__(self, app, timeout_seconds: int):
        super().__init__(app)
        self.timeout_seconds = timeout_seconds

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            return await asyncio.wait_for(call_next(request), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error(
                "Request timeout",
                timeout_seconds=self.timeout_seconds,
                path=str(request.url.path),
                method=request.method,
            )
            return error_response(
                status.HTTP_504_GATEWAY_TIMEOUT,
                "RequestTimeout",
                f"Request timeout after {self.timeout_seconds} seconds",
            )


def setup_middleware(app):
    """Register middleware according to settings. The last one added runs first."""
    if settings.enable_request_timeout:
        app.add_middleware(RequestTimeoutMiddleware, timeout_seconds=settings.request_timeout_seconds)

    if settings.enable_request_size_limit:
        app.add_middleware(RequestSizeMiddleware, max_size=settings.max_request_size_bytes)

    if settings.enable_request_logging:
        app.add_middleware(RequestLoggingMiddleware)

    if settings.enable_security_headers:
        app.add_middleware(SecurityHeadersMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
