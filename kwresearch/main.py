"""FastAPI application entry point.

Deployment Requirements:
- Binds to PORT from environment variable
- Health endpoint at /health for platform health checks
- Graceful shutdown with SIGTERM handling
- All logs to stdout/stderr

Error Logging Requirements:
- Log all incoming requests with method, path, request_id
- Log request body at DEBUG level (sanitize sensitive fields)
- Log response status and timing for every request
- Return structured error responses: {"error": str, "code": str, "request_id": str}
- Log 4xx errors at WARNING, 5xx at ERROR
"""

import asyncio
import json
import logging
import signal
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from kwresearch.api.v1 import router as api_v1_router
from kwresearch.core.config import get_settings
from kwresearch.core.logging import get_logger, setup_logging
from kwresearch.integrations.google_ads import close_google_ads, init_google_ads
from kwresearch.integrations.serpapi import close_serpapi, init_serpapi
from kwresearch.services.keyword_research import (
    KeywordResearchService,
    build_keyword_research_service,
)

# Set up logging before anything else
setup_logging()
logger = get_logger(__name__)

# Sensitive fields to redact from request body logs
SENSITIVE_FIELDS = {
    "password",
    "token",
    "secret",
    "api_key",
    "authorization",
    "refresh_token",
    "client_secret",
    "developer_token",
}


def sanitize_body(body: Any) -> Any:
    """Redact sensitive fields from request body for logging."""
    if not isinstance(body, dict):
        return body
    sanitized: dict[str, Any] = {}
    for key, value in body.items():
        if key.lower() in SENSITIVE_FIELDS:
            sanitized[key] = "****"
        elif isinstance(value, dict):
            sanitized[key] = sanitize_body(value)
        else:
            sanitized[key] = value
    return sanitized


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log all incoming requests with timing and request_id."""

    async def dispatch(self, request: Request, call_next: Any) -> Any:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.monotonic()
        method = request.method
        path = request.url.path

        logger.info(
            "Request started",
            extra={
                "request_id": request_id,
                "method": method,
                "path": path,
                "query_params": str(request.query_params)
                if request.query_params
                else None,
            },
        )

        # Request body at DEBUG level (for non-GET requests)
        if method not in ("GET", "HEAD", "OPTIONS") and logger.isEnabledFor(
            logging.DEBUG
        ):
            body = await request.body()
            if body:
                try:
                    body_json = json.loads(body)
                except (json.JSONDecodeError, UnicodeDecodeError):
                    logger.debug(
                        "Request body (non-JSON)",
                        extra={"request_id": request_id, "body_length": len(body)},
                    )
                else:
                    logger.debug(
                        "Request body",
                        extra={"request_id": request_id, "body": sanitize_body(body_json)},
                    )

        response = await call_next(request)

        duration_ms = (time.monotonic() - start_time) * 1000
        status_code = response.status_code

        response.headers["X-Request-ID"] = request_id

        log_extra = {
            "request_id": request_id,
            "method": method,
            "path": path,
            "status_code": status_code,
            "duration_ms": round(duration_ms, 2),
        }

        if status_code >= 500:
            logger.error("Request failed", extra=log_extra)
        elif status_code >= 400:
            logger.warning("Request error", extra=log_extra)
        else:
            logger.info("Request completed", extra=log_extra)

        return response


@asynccontextmanager
async def lifespan(app: FastAPI) -> Any:
    """Application lifespan manager for startup/shutdown.

    Handles:
    - Provider client initialization
    - Keyword research service wiring (unless one was injected)
    - Graceful shutdown on SIGTERM
    """
    settings = get_settings()
    logger.info(
        "Starting application",
        extra={
            "app_name": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
        },
    )

    serpapi_client = await init_serpapi()
    if serpapi_client.available:
        logger.info("SerpAPI client initialized")
    else:
        logger.warning("SerpAPI not configured (missing SERPAPI_KEY), using synthetic suggestions")

    google_ads_client = await init_google_ads()
    if google_ads_client.available:
        logger.info(
            "Google Ads client initialized",
            extra={"api_version": settings.google_ads_api_version},
        )
    else:
        logger.warning("Google Ads not configured (missing credentials), metrics disabled")

    if getattr(app.state, "keyword_research_service", None) is None:
        app.state.keyword_research_service = build_keyword_research_service(
            serpapi_client, google_ads_client, settings
        )
        logger.info(
            "Keyword research service initialized",
            extra={"cache_ttl_hours": settings.result_cache_ttl_hours},
        )

    shutdown_event = asyncio.Event()

    def handle_sigterm(*args: Any) -> None:
        logger.info("Received SIGTERM, initiating graceful shutdown")
        shutdown_event.set()

    # Signal handlers can only be registered from the main thread
    try:
        signal.signal(signal.SIGTERM, handle_sigterm)
        signal.signal(signal.SIGINT, handle_sigterm)
    except ValueError:
        logger.debug("Signal handlers not registered (not in main thread)")

    yield

    logger.info("Shutting down application")
    await close_google_ads()
    await close_serpapi()
    logger.info("Application shutdown complete")


def create_app(service: KeywordResearchService | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        service: Pre-built keyword research service. When omitted, one is
            wired from the configured provider clients at startup.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.keyword_research_service = service

    # Request logging middleware (added first, runs last)
    app.add_middleware(RequestLoggingMiddleware)

    # CORS - use FRONTEND_URL for production, allow all origins otherwise
    cors_origins: list[str] = ["*"]
    if settings.frontend_url:
        cors_origins = [settings.frontend_url]
        logger.info(
            "CORS configured for production",
            extra={"allowed_origins": cors_origins},
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle validation errors with structured response."""
        request_id = getattr(request.state, "request_id", "unknown")
        errors = exc.errors()
        error_msg = "; ".join(
            f"{'.'.join(str(loc) for loc in e['loc'])}: {e['msg']}" for e in errors
        )
        logger.warning(
            "Validation error",
            extra={
                "request_id": request_id,
                "errors": error_msg,
            },
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": error_msg,
                "code": "VALIDATION_ERROR",
                "request_id": request_id,
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected errors with structured response."""
        request_id = getattr(request.state, "request_id", "unknown")
        logger.error(
            "Unhandled exception",
            extra={
                "request_id": request_id,
                "error_type": type(exc).__name__,
                "error_message": str(exc),
            },
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "An internal error occurred. Please try again later.",
                "code": "INTERNAL_ERROR",
                "request_id": request_id,
            },
        )

    @app.get("/health", tags=["Health"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint.

        Returns {"status": "ok"} if the service is running.
        """
        return {"status": "ok"}

    @app.get("/health/integrations", tags=["Health"])
    async def integrations_health(request: Request) -> dict[str, Any]:
        """Check configuration of external providers and the result cache."""
        from kwresearch.integrations.google_ads import google_ads_client
        from kwresearch.integrations.serpapi import serpapi_client

        settings = get_settings()
        keyword_service = getattr(request.app.state, "keyword_research_service", None)

        return {
            "serpapi": {
                "api_key_set": bool(settings.serpapi_key),
                "circuit_breaker": serpapi_client.circuit_breaker.state.value
                if serpapi_client
                else "not_initialized",
            },
            "google_ads": {
                "client_id_set": bool(settings.google_ads_client_id),
                "client_secret_set": bool(settings.google_ads_client_secret),
                "refresh_token_set": bool(settings.google_ads_refresh_token),
                "developer_token_set": bool(settings.google_ads_developer_token),
                "customer_id_set": bool(settings.google_ads_customer_id),
                "api_version": settings.google_ads_api_version,
                "circuit_breaker": google_ads_client.circuit_breaker.state.value
                if google_ads_client
                else "not_initialized",
            },
            "result_cache": keyword_service.cache.get_stats_summary()
            if keyword_service
            else None,
        }

    app.include_router(api_v1_router, prefix="/api/v1")

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "kwresearch.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
