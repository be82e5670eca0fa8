"""Core utilities and configuration."""

from kwresearch.core.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
)
from kwresearch.core.config import Settings, get_settings
from kwresearch.core.logging import (
    get_logger,
    google_ads_logger,
    mask_secret,
    setup_logging,
)

__all__ = [
    # Circuit breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitState",
    # Config
    "Settings",
    "get_settings",
    # Logging
    "get_logger",
    "google_ads_logger",
    "mask_secret",
    "setup_logging",
]
