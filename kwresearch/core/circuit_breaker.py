"""Shared circuit breaker for outbound provider calls.

Both keyword providers (SerpAPI suggestions and Google Ads metrics) are
quota-sensitive. After failure_threshold consecutive failures the circuit
opens and calls are skipped, so the owning source degrades to its fallback
immediately instead of waiting on a provider that is known to be down.
After recovery_timeout a single probe call is allowed through (half-open).
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, skip provider calls
    HALF_OPEN = "half_open"  # Probing whether the provider recovered


@dataclass
class CircuitBreakerConfig:
    """Circuit breaker configuration."""

    failure_threshold: int
    recovery_timeout: float


class CircuitBreaker:
    """Circuit breaker guarding a single provider.

    The clock is injectable (monotonic seconds) so recovery can be
    exercised in tests without sleeping.
    """

    def __init__(
        self,
        config: CircuitBreakerConfig,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._name = name
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: float | None = None
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        """Get circuit breaker name."""
        return self._name

    @property
    def state(self) -> CircuitState:
        """Get current circuit state."""
        return self._state

    @property
    def failure_count(self) -> int:
        """Get current failure count."""
        return self._failure_count

    @property
    def is_closed(self) -> bool:
        return self._state == CircuitState.CLOSED

    @property
    def is_open(self) -> bool:
        return self._state == CircuitState.OPEN

    @property
    def is_half_open(self) -> bool:
        return self._state == CircuitState.HALF_OPEN

    def _recovery_due(self) -> bool:
        if self._last_failure_time is None:
            return False
        elapsed = self._clock() - self._last_failure_time
        return elapsed >= self._config.recovery_timeout

    def _transition(self, new_state: CircuitState) -> None:
        previous_state = self._state
        self._state = new_state
        logger.info(
            "Circuit breaker state change",
            extra={
                "circuit_name": self._name,
                "previous_state": previous_state.value,
                "new_state": new_state.value,
                "failure_count": self._failure_count,
            },
        )
        if new_state == CircuitState.OPEN:
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "circuit_name": self._name,
                    "failure_count": self._failure_count,
                    "recovery_timeout": self._config.recovery_timeout,
                },
            )

    async def can_execute(self) -> bool:
        """Check if a provider call may be attempted."""
        async with self._lock:
            if self._state == CircuitState.CLOSED:
                return True

            if self._state == CircuitState.OPEN:
                if self._recovery_due():
                    self._transition(CircuitState.HALF_OPEN)
                    return True
                return False

            # HALF_OPEN: the probe call is in flight
            return True

    async def record_success(self) -> None:
        """Record successful provider call."""
        async with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._failure_count = 0
                self._last_failure_time = None
                self._transition(CircuitState.CLOSED)
            elif self._state == CircuitState.CLOSED:
                self._failure_count = 0

    async def record_failure(self) -> None:
        """Record failed provider call."""
        async with self._lock:
            self._failure_count += 1
            self._last_failure_time = self._clock()

            if self._state == CircuitState.HALF_OPEN:
                self._transition(CircuitState.OPEN)
            elif (
                self._state == CircuitState.CLOSED
                and self._failure_count >= self._config.failure_threshold
            ):
                self._transition(CircuitState.OPEN)
