"""Middleware and exception handlers for the FastAPI application."""

import logging
import time
from typing import Any, Awaitable, Callable

from fastapi import FastAPI, Request, status  # type: ignore[import-untyped]
from fastapi.middleware.cors import CORSMiddleware  # type: ignore[import-untyped]
from fastapi.responses import JSONResponse  # type: ignore[import-untyped]

from kimai.core.config import ConfigManager
from kimai.core.exceptions import (
    AccessDeniedError,
    AuthenticationError,
    KimaiError,
    NotFoundError,
    ValidationError,
    WidgetError,
)

logger = logging.getLogger(__name__)

# most specific first
ERROR_STATUS: list[tuple[type[KimaiError], int]] = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (AccessDeniedError, status.HTTP_403_FORBIDDEN),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (WidgetError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def setup_cors(app: FastAPI, config: ConfigManager) -> None:
    """Configure CORS middleware.

    CORS is configured based on the api.cors section in config.
    By default, only localhost origins are allowed.
    """
    if not config.get("api.cors.enabled", True):
        return

    origins = config.get("api.cors.origins", ["http://localhost:3000"])

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Page", "X-Total-Count", "X-Total-Pages", "X-Per-Page"],
    )


def error_status(error: KimaiError) -> int:
    for error_class, status_code in ERROR_STATUS:
        if isinstance(error, error_class):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def kimai_error_handler(request: Request, exc: KimaiError) -> JSONResponse:
    """Translate domain exceptions into JSON error responses."""
    status_code = error_status(exc)
    content: dict[str, Any] = {"detail": exc.message}
    if isinstance(exc, ValidationError) and exc.field:
        content["field"] = exc.field
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=status_code, content=content)


def setup_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(KimaiError, kimai_error_handler)


def setup_request_logging(app: FastAPI) -> None:
    @app.middleware("http")
    async def log_requests(
        request: Request, call_next: Callable[[Request], Awaitable[Any]]
    ) -> Any:
        started = time.perf_counter()
        response = await call_next(request)
        elapsed = (time.perf_counter() - started) * 1000
        logger.debug(
            f"{request.method} {request.url.path} -> {response.status_code} ({elapsed:.1f} ms)"
        )
        return response


def setup_middleware(app: FastAPI, config: ConfigManager) -> None:
    """Set up all middleware for the application.

    Args:
        app: FastAPI application instance
        config: Configuration manager

    Note:
        This function configures:
        - CORS middleware
        - Domain exception handlers
        - Request logging
    """
    setup_cors(app, config)
    setup_exception_handlers(app)
    setup_request_logging(app)
