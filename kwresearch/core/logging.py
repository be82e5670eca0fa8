"""Structured logging configuration.

All logs go to stdout. Uses JSON format for structured logging in
production and a plain text format for local development.

ERROR LOGGING REQUIREMENTS:
- Log all outbound provider calls with endpoint, method, timing
- Include retry attempt number in logs
- Log and handle: timeouts, rate limits (429), auth failures (401/403)
- Never log credentials (client secrets, refresh/access tokens, API keys)
- Log circuit breaker state changes
"""

import logging
import sys
from datetime import UTC, datetime
from typing import Any

from pythonjsonlogger import jsonlogger

from kwresearch.core.config import get_settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):  # type: ignore[name-defined]
    """Custom JSON formatter with additional fields."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(UTC).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)


def mask_secret(value: str | None, visible: int = 4) -> str:
    """Mask a credential, keeping only its last few characters."""
    if not value:
        return ""
    if len(value) <= visible:
        return "****"
    return "****" + value[-visible:]


def setup_logging() -> None:
    """Configure application logging.

    Outputs to stdout only. Uses JSON format in production,
    text format in development.
    """
    settings = get_settings()

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level.upper()))

    # Clear existing handlers
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)

    formatter: logging.Formatter
    if settings.log_format == "json":
        formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    # Set log levels for noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name."""
    return logging.getLogger(name)


class GoogleAdsLogger:
    """Logger for Google Ads API operations with required error logging.

    Logs the OAuth credential exchange and Keyword Planner calls with
    endpoint, method and timing. Includes retry attempt numbers.
    Never receives or logs tokens or client secrets.
    """

    def __init__(self) -> None:
        self.logger = get_logger("google_ads")

    def api_call_start(
        self,
        endpoint: str,
        method: str = "POST",
        retry_attempt: int = 0,
        request_id: str | None = None,
    ) -> None:
        """Log outbound API call start at DEBUG level."""
        self.logger.debug(
            f"Google Ads API call: {method} {endpoint}",
            extra={
                "endpoint": endpoint,
                "method": method,
                "retry_attempt": retry_attempt,
                "request_id": request_id,
            },
        )

    def api_call_success(
        self,
        endpoint: str,
        duration_ms: float,
        method: str = "POST",
        results_count: int | None = None,
        request_id: str | None = None,
    ) -> None:
        """Log successful API call at DEBUG level."""
        self.logger.debug(
            f"Google Ads API call completed: {method} {endpoint}",
            extra={
                "endpoint": endpoint,
                "method": method,
                "duration_ms": round(duration_ms, 2),
                "results_count": results_count,
                "request_id": request_id,
                "success": True,
            },
        )

    def api_call_error(
        self,
        endpoint: str,
        duration_ms: float,
        status_code: int | None,
        error: str,
        error_type: str,
        method: str = "POST",
        retry_attempt: int = 0,
        request_id: str | None = None,
    ) -> None:
        """Log failed API call at WARNING or ERROR level based on status."""
        # 4xx at WARNING, 5xx and others at ERROR
        level = logging.WARNING if status_code and 400 <= status_code < 500 else logging.ERROR
        self.logger.log(
            level,
            f"Google Ads API call failed: {method} {endpoint}",
            extra={
                "endpoint": endpoint,
                "method": method,
                "duration_ms": round(duration_ms, 2),
                "status_code": status_code,
                "error": error[:500],
                "error_type": error_type,
                "retry_attempt": retry_attempt,
                "request_id": request_id,
                "success": False,
            },
        )

    def timeout(self, endpoint: str, timeout_seconds: float) -> None:
        """Log request timeout at WARNING level."""
        self.logger.warning(
            "Google Ads API request timeout",
            extra={
                "endpoint": endpoint,
                "timeout_seconds": timeout_seconds,
            },
        )

    def rate_limit(
        self,
        endpoint: str,
        retry_after: float | None = None,
        request_id: str | None = None,
    ) -> None:
        """Log rate limit / quota exhaustion (429) at WARNING level."""
        self.logger.warning(
            "Google Ads API rate limit hit (429)",
            extra={
                "endpoint": endpoint,
                "retry_after_seconds": retry_after,
                "request_id": request_id,
            },
        )

    def auth_failure(self, status_code: int, stage: str) -> None:
        """Log authentication failure at WARNING level."""
        self.logger.warning(
            f"Google Ads authentication failed ({status_code})",
            extra={
                "status_code": status_code,
                "stage": stage,
            },
        )

    def token_exchange(self, duration_ms: float, expires_in: int | None, cached: bool) -> None:
        """Log access token acquisition at DEBUG level."""
        self.logger.debug(
            "Google Ads access token acquired",
            extra={
                "duration_ms": round(duration_ms, 2),
                "expires_in": expires_in,
                "from_cache": cached,
            },
        )

    def graceful_fallback(self, operation: str, reason: str) -> None:
        """Log graceful fallback when Google Ads is unavailable."""
        self.logger.info(
            "Google Ads unavailable, returning no metrics",
            extra={
                "operation": operation,
                "reason": reason,
            },
        )

    def keyword_metrics_start(
        self,
        keywords: list[str],
        geography: str,
        language: str,
    ) -> None:
        """Log keyword metrics lookup start at INFO level."""
        keywords_preview = keywords[:5]
        if len(keywords) > 5:
            keywords_str = f"{keywords_preview}... ({len(keywords)} total)"
        else:
            keywords_str = str(keywords_preview)
        self.logger.info(
            "Starting Google Ads keyword metrics lookup",
            extra={
                "keywords": keywords_str,
                "keyword_count": len(keywords),
                "geography": geography,
                "language": language,
            },
        )

    def keyword_metrics_complete(
        self,
        keyword_count: int,
        duration_ms: float,
        success: bool,
        results_count: int = 0,
    ) -> None:
        """Log keyword metrics lookup completion."""
        level = logging.INFO if success else logging.WARNING
        self.logger.log(
            level,
            "Google Ads keyword metrics lookup completed"
            if success
            else "Google Ads keyword metrics lookup failed",
            extra={
                "keyword_count": keyword_count,
                "duration_ms": round(duration_ms, 2),
                "success": success,
                "results_count": results_count,
            },
        )


google_ads_logger = GoogleAdsLogger()
