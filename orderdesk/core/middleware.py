from fastapi import Request, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse
import time
import uuid
from typing import Callable

from ..config.settings import get_settings
from ..config.logging import get_logger, log_api_request, log_api_response
from .exceptions import ServerError, format_error_response

logger = get_logger(__name__)
settings = get_settings()


# Request ID Middleware
class RequestIDMiddleware(BaseHTTPMiddleware):
    """Add unique request ID to each request."""

    async def dispatch(self, request: Request, call_next: Callable):
        request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-Id"] = request_id

        return response


# Logging Middleware
class LoggingMiddleware(BaseHTTPMiddleware):
    """Log all API requests and responses."""

    def __init__(self, app, skip_paths: list = None):
        super().__init__(app)
        self.skip_paths = skip_paths or ["/health", "/docs", "/openapi.json"]

    async def dispatch(self, request: Request, call_next: Callable):
        if any(request.url.path.startswith(path) for path in self.skip_paths):
            return await call_next(request)

        start_time = time.time()
        request_id = getattr(request.state, "request_id", "unknown")

        log_api_request(
            request_id=request_id,
            method=request.method,
            path=request.url.path
        )

        try:
            response = await call_next(request)
        except Exception as e:
            duration = time.time() - start_time
            logger.error(f"Request {request_id} failed after {duration:.3f}s: {str(e)}")
            raise

        duration = time.time() - start_time
        log_api_response(
            request_id=request_id,
            status_code=response.status_code,
            duration=duration
        )
        response.headers["X-Process-Time"] = f"{duration:.4f}"
        return response


# Error Handling Middleware
class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Convert unexpected exceptions into a SERVER_ERROR body."""

    async def dispatch(self, request: Request, call_next: Callable):
        try:
            return await call_next(request)
        except HTTPException:
            raise
        except Exception:
            logger.exception(f"Unhandled error in {request.method} {request.url.path}")
            body = format_error_response(ServerError("An unexpected error occurred"))
            body["request_id"] = getattr(request.state, "request_id", "unknown")
            return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)


def register_middleware(app):
    """Register all middleware with the FastAPI app."""

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Last added is executed first
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    logger.info("All middleware registered successfully")
