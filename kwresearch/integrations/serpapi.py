"""SerpAPI integration client for keyword suggestions.

Runs a Google search for the seed phrase via SerpAPI and returns the
"related searches" and "related questions" (People Also Ask) blocks as
raw keyword phrases.

Features:
- Async HTTP client using httpx (direct API calls)
- Circuit breaker for fault tolerance
- Retry logic with exponential backoff
- Never raises: failures are reported on the result object so callers
  can fall back to synthetic suggestions
- API key is never logged
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from kwresearch.core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from kwresearch.core.config import get_settings
from kwresearch.core.logging import get_logger

logger = get_logger(__name__)

# SerpAPI base URL
SERPAPI_URL = "https://serpapi.com/search"

# Organic results requested per search (only the related blocks are used)
DEFAULT_NUM_RESULTS = 10

# Google country used for the search
DEFAULT_COUNTRY = "us"


@dataclass
class RelatedQueriesResult:
    """Related searches and related questions for a single query."""

    success: bool
    query: str
    related_searches: list[str] = field(default_factory=list)
    related_questions: list[str] = field(default_factory=list)
    error: str | None = None
    duration_ms: float = 0.0

    @property
    def phrases(self) -> list[str]:
        """Related searches followed by related questions."""
        return self.related_searches + self.related_questions


class SerpAPIError(Exception):
    """Base exception for SerpAPI errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class SerpAPIClient:
    """Async client for SerpAPI Google search.

    Provides related-query discovery with:
    - Circuit breaker for fault tolerance
    - Retry logic with exponential backoff
    - Structured result parsing
    """

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
    ) -> None:
        """Initialize SerpAPI client.

        Args:
            api_key: SerpAPI key. Defaults to settings.
            timeout: Request timeout in seconds. Defaults to settings.
            max_retries: Maximum attempts. Defaults to settings.
            retry_delay: Base delay between retries. Defaults to settings.
        """
        settings = get_settings()

        self._api_key = api_key or settings.serpapi_key
        self._timeout = timeout or settings.serpapi_timeout
        self._max_retries = max(
            1, max_retries if max_retries is not None else settings.serpapi_max_retries
        )
        self._retry_delay = (
            retry_delay if retry_delay is not None else settings.serpapi_retry_delay
        )

        self._circuit_breaker = CircuitBreaker(
            CircuitBreakerConfig(
                failure_threshold=settings.serpapi_circuit_failure_threshold,
                recovery_timeout=settings.serpapi_circuit_recovery_timeout,
            ),
            name="serpapi",
        )

        # HTTP client (created lazily)
        self._client: httpx.AsyncClient | None = None
        self._available = bool(self._api_key)

        logger.info(
            "SerpAPIClient instantiated",
            extra={
                "available": self._available,
                "timeout": self._timeout,
                "max_retries": self._max_retries,
            },
        )

    @property
    def available(self) -> bool:
        """Check if SerpAPI is configured and available."""
        return self._available

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        """Get the circuit breaker instance."""
        return self._circuit_breaker

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
        logger.info("SerpAPI client closed")

    @staticmethod
    def _parse_related(data: dict[str, Any]) -> tuple[list[str], list[str]]:
        """Extract related search and related question phrases.

        Raises:
            SerpAPIError: If the response is not shaped like a search result.
        """
        if not isinstance(data, dict):
            raise SerpAPIError("Unexpected response body (not an object)")

        related_searches = data.get("related_searches") or []
        related_questions = data.get("related_questions") or []
        if not isinstance(related_searches, list):
            raise SerpAPIError("Unexpected response body (related_searches is not a list)")
        if not isinstance(related_questions, list):
            raise SerpAPIError("Unexpected response body (related_questions is not a list)")

        searches: list[str] = []
        for item in related_searches:
            query = item.get("query") if isinstance(item, dict) else None
            if isinstance(query, str) and query.strip():
                searches.append(query.strip())

        questions: list[str] = []
        for item in related_questions:
            question = item.get("question") if isinstance(item, dict) else None
            if isinstance(question, str) and question.strip():
                questions.append(question.strip())

        return searches, questions

    def _fail(self, query: str, error: str, start_time: float) -> RelatedQueriesResult:
        return RelatedQueriesResult(
            success=False,
            query=query,
            error=error,
            duration_ms=(time.monotonic() - start_time) * 1000,
        )

    async def related_queries(
        self,
        query: str,
        country: str = DEFAULT_COUNTRY,
        num_results: int = DEFAULT_NUM_RESULTS,
    ) -> RelatedQueriesResult:
        """Fetch related searches and related questions for a query.

        Args:
            query: The seed phrase to search for.
            country: Google country code (gl parameter).
            num_results: Organic results to request.

        Returns:
            RelatedQueriesResult; success is False on any failure.
        """
        start_time = time.monotonic()

        if not self._available:
            logger.debug("SerpAPI not configured (missing API key)")
            return self._fail(query, "SerpAPI not configured", start_time)

        if not await self._circuit_breaker.can_execute():
            logger.warning("SerpAPI circuit breaker is open, skipping request")
            return self._fail(query, "Circuit breaker open", start_time)

        params: dict[str, Any] = {
            "engine": "google",
            "q": query,
            "api_key": self._api_key,
            "num": num_results,
            "gl": country,
        }

        client = await self._get_client()
        last_error = "Request failed after all retries"

        for attempt in range(self._max_retries):
            attempt_start = time.monotonic()
            retryable = False

            try:
                logger.info(
                    "SerpAPI related queries request",
                    extra={
                        "query": query[:100],
                        "country": country,
                        "attempt": attempt + 1,
                    },
                )

                response = await client.get(SERPAPI_URL, params=params)
                duration_ms = (time.monotonic() - attempt_start) * 1000

                if response.status_code == 429 or response.status_code >= 500:
                    logger.warning(
                        "SerpAPI request failed",
                        extra={
                            "status_code": response.status_code,
                            "duration_ms": round(duration_ms, 2),
                            "attempt": attempt + 1,
                        },
                    )
                    await self._circuit_breaker.record_failure()
                    last_error = f"SerpAPI error ({response.status_code})"
                    retryable = True

                elif response.status_code in (401, 403):
                    logger.error(
                        "SerpAPI authentication failed",
                        extra={
                            "status_code": response.status_code,
                            "duration_ms": round(duration_ms, 2),
                        },
                    )
                    await self._circuit_breaker.record_failure()
                    return self._fail(
                        query,
                        f"Authentication failed ({response.status_code})",
                        start_time,
                    )

                elif response.status_code >= 400:
                    logger.error(
                        "SerpAPI client error",
                        extra={
                            "status_code": response.status_code,
                            "duration_ms": round(duration_ms, 2),
                        },
                    )
                    return self._fail(
                        query, f"Client error ({response.status_code})", start_time
                    )

                else:
                    searches, questions = self._parse_related(response.json())
                    await self._circuit_breaker.record_success()

                    logger.info(
                        "SerpAPI related queries complete",
                        extra={
                            "query": query[:100],
                            "related_searches": len(searches),
                            "related_questions": len(questions),
                            "duration_ms": round(duration_ms, 2),
                        },
                    )

                    return RelatedQueriesResult(
                        success=True,
                        query=query,
                        related_searches=searches,
                        related_questions=questions,
                        duration_ms=(time.monotonic() - start_time) * 1000,
                    )

            except httpx.TimeoutException:
                logger.warning(
                    "SerpAPI request timed out",
                    extra={"timeout": self._timeout, "attempt": attempt + 1},
                )
                await self._circuit_breaker.record_failure()
                last_error = f"Request timed out after {self._timeout}s"
                retryable = True

            except httpx.RequestError as e:
                logger.warning(
                    "SerpAPI request failed",
                    extra={
                        "error": str(e),
                        "error_type": type(e).__name__,
                        "attempt": attempt + 1,
                    },
                )
                await self._circuit_breaker.record_failure()
                last_error = f"Request failed: {e}"
                retryable = True

            except (ValueError, SerpAPIError) as e:
                # Unparseable body: not worth retrying
                logger.error(
                    "SerpAPI response could not be parsed",
                    extra={"error": str(e), "error_type": type(e).__name__},
                )
                await self._circuit_breaker.record_failure()
                return self._fail(query, f"Invalid response: {e}", start_time)

            except Exception as e:
                logger.error(
                    "SerpAPI request raised unexpectedly",
                    extra={
                        "query": query[:100],
                        "error": str(e),
                        "error_type": type(e).__name__,
                        "attempt": attempt + 1,
                    },
                    exc_info=True,
                )
                await self._circuit_breaker.record_failure()
                return self._fail(query, f"Unexpected error: {e}", start_time)

            if retryable and attempt < self._max_retries - 1:
                delay = self._retry_delay * (2**attempt)
                await asyncio.sleep(delay)

        logger.error(
            "SerpAPI request failed after all retries",
            extra={"error": last_error, "max_retries": self._max_retries},
        )
        return self._fail(query, last_error, start_time)


# ---------------------------------------------------------------------------
# Client lifecycle functions
# ---------------------------------------------------------------------------

serpapi_client: SerpAPIClient | None = None


async def init_serpapi() -> SerpAPIClient:
    """Initialize the application-wide SerpAPI client."""
    global serpapi_client
    if serpapi_client is None:
        serpapi_client = SerpAPIClient()
        if serpapi_client.available:
            logger.info("SerpAPI client initialized")
        else:
            logger.info("SerpAPI not configured (missing SERPAPI_KEY)")
    return serpapi_client


async def close_serpapi() -> None:
    """Close the application-wide SerpAPI client."""
    global serpapi_client
    if serpapi_client:
        await serpapi_client.close()
        serpapi_client = None
