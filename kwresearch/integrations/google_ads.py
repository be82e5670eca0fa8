"""Google Ads API integration client for paid-search keyword metrics.

Features:
- Async HTTP client using httpx (direct REST calls, no SDK)
- OAuth credential exchange (client id/secret + refresh token -> access token)
- Keyword Planner historical metrics: volume, top-of-page bid range, competition index
- Circuit breaker for fault tolerance
- Retry logic with exponential backoff on timeouts, 429 and 5xx
- Credentials and tokens are never logged

The credential exchange runs before every metrics call. Reusing the access
token until shortly before it expires is opt-in (cache_access_token).

ERROR LOGGING REQUIREMENTS:
- Log all outbound API calls with endpoint, method, timing
- Log and handle: timeouts, rate limits (429), auth failures (401/403)
- Include retry attempt number in logs
- Mask API credentials in all logs
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Any

import httpx

from kwresearch.core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from kwresearch.core.config import get_settings
from kwresearch.core.logging import get_logger, google_ads_logger, mask_secret

logger = get_logger(__name__)

GOOGLE_OAUTH_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_ADS_API_URL = "https://googleads.googleapis.com"

# Cached tokens are refreshed this many seconds before they expire
TOKEN_EXPIRY_MARGIN_SECONDS = 60

# Longest Retry-After we are willing to wait inside a request
MAX_RETRY_AFTER_SECONDS = 60.0

KEYWORD_PLAN_NETWORK = "GOOGLE_SEARCH"


@dataclass
class HistoricalMetrics:
    """Metrics for one keyword text, as returned by the API."""

    text: str
    avg_monthly_searches: int = 0
    low_top_of_page_bid_micros: int = 0
    high_top_of_page_bid_micros: int = 0
    competition_index: int = 0


@dataclass
class HistoricalMetricsResult:
    """Result of a historical metrics lookup."""

    success: bool
    rows: list[HistoricalMetrics] = field(default_factory=list)
    error: str | None = None
    duration_ms: float = 0.0
    request_id: str | None = None


class GoogleAdsError(Exception):
    """Base exception for Google Ads API errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: Any = None,
        request_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body
        self.request_id = request_id


class GoogleAdsTimeoutError(GoogleAdsError):
    """Raised when a request times out."""

    pass


class GoogleAdsRateLimitError(GoogleAdsError):
    """Raised when rate limited or out of quota (429)."""

    def __init__(
        self,
        message: str,
        retry_after: float | None = None,
        request_id: str | None = None,
    ) -> None:
        super().__init__(message, status_code=429, request_id=request_id)
        self.retry_after = retry_after


class GoogleAdsAuthError(GoogleAdsError):
    """Raised when the credential exchange or API authentication fails."""

    pass


def to_geo_target_constant(geography: str) -> str:
    """Expand a bare geo id ("2840") into its resource name."""
    geography = str(geography).strip()
    if geography.isdigit():
        return f"geoTargetConstants/{geography}"
    return geography


def to_language_constant(language: str) -> str:
    """Expand a bare language id ("1000") into its resource name."""
    language = str(language).strip()
    if language.isdigit():
        return f"languageConstants/{language}"
    return language


def _int_field(value: Any) -> int:
    """Parse an int64 metric; the JSON mapping encodes int64 as strings."""
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise ValueError(f"Unexpected boolean metric value: {value!r}")
    return int(value)


def parse_historical_metrics(body: Any) -> list[HistoricalMetrics]:
    """Parse a generateKeywordHistoricalMetrics response body.

    Rows without text or without a keywordMetrics object carry no data
    and are dropped. Missing fields inside a metrics object count as 0.
    Google folds submitted close variants ("yoga mat", "yoga mats") into one
    row; each listed closeVariant gets a copy of that row's metrics.

    Raises:
        GoogleAdsError: If the body is not a valid historical metrics response.
    """
    if not isinstance(body, dict):
        raise GoogleAdsError("Unexpected response body (not an object)")

    results = body.get("results") or []
    if not isinstance(results, list):
        raise GoogleAdsError("Unexpected response body (results is not a list)")

    rows: list[HistoricalMetrics] = []
    for row in results:
        if not isinstance(row, dict):
            continue
        text = row.get("text")
        metrics = row.get("keywordMetrics")
        if not isinstance(text, str) or not text.strip() or not isinstance(metrics, dict):
            continue
        try:
            parsed = HistoricalMetrics(
                text=text,
                avg_monthly_searches=max(0, _int_field(metrics.get("avgMonthlySearches"))),
                low_top_of_page_bid_micros=max(
                    0, _int_field(metrics.get("lowTopOfPageBidMicros"))
                ),
                high_top_of_page_bid_micros=max(
                    0, _int_field(metrics.get("highTopOfPageBidMicros"))
                ),
                competition_index=min(
                    100, max(0, _int_field(metrics.get("competitionIndex")))
                ),
            )
        except (TypeError, ValueError) as e:
            raise GoogleAdsError(f"Malformed metrics for {text[:50]!r}: {e}") from e
        rows.append(parsed)

        variants = row.get("closeVariants")
        if isinstance(variants, list):
            for variant in variants:
                if isinstance(variant, str) and variant.strip() and variant != text:
                    rows.append(replace(parsed, text=variant))
    return rows


class GoogleAdsClient:
    """Async client for the Google Ads Keyword Planner REST API.

    Authentication:
    OAuth2 refresh-token grant against Google's token endpoint, plus the
    developer-token header and (optionally) login-customer-id for manager
    accounts.
    """

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        refresh_token: str | None = None,
        developer_token: str | None = None,
        customer_id: str | None = None,
        login_customer_id: str | None = None,
        api_version: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
        cache_access_token: bool | None = None,
    ) -> None:
        """Initialize Google Ads client.

        Every argument defaults to the matching GOOGLE_ADS_* setting.
        """
        settings = get_settings()

        self._client_id = client_id or settings.google_ads_client_id
        self._client_secret = client_secret or settings.google_ads_client_secret
        self._refresh_token = refresh_token or settings.google_ads_refresh_token
        self._developer_token = developer_token or settings.google_ads_developer_token
        raw_customer_id = customer_id or settings.google_ads_customer_id or ""
        self._customer_id = raw_customer_id.replace("-", "")
        raw_login_id = login_customer_id or settings.google_ads_login_customer_id or ""
        self._login_customer_id = raw_login_id.replace("-", "")
        self._api_version = api_version or settings.google_ads_api_version
        self._timeout = timeout or settings.google_ads_timeout
        self._max_retries = max(
            1,
            max_retries if max_retries is not None else settings.google_ads_max_retries,
        )
        self._retry_delay = (
            retry_delay if retry_delay is not None else settings.google_ads_retry_delay
        )
        self._cache_access_token = (
            cache_access_token
            if cache_access_token is not None
            else settings.google_ads_cache_access_token
        )

        self._circuit_breaker = CircuitBreaker(
            CircuitBreakerConfig(
                failure_threshold=settings.google_ads_circuit_failure_threshold,
                recovery_timeout=settings.google_ads_circuit_recovery_timeout,
            ),
            name="google_ads",
        )

        self._client: httpx.AsyncClient | None = None
        self._access_token: str | None = None
        self._token_expires_at: float = 0.0
        self._available = all(
            (
                self._client_id,
                self._client_secret,
                self._refresh_token,
                self._developer_token,
                self._customer_id,
            )
        )

        logger.info(
            "GoogleAdsClient instantiated",
            extra={
                "available": self._available,
                "customer_id": mask_secret(self._customer_id),
                "developer_token": mask_secret(self._developer_token),
                "api_version": self._api_version,
                "cache_access_token": self._cache_access_token,
            },
        )

    @property
    def available(self) -> bool:
        """Check if Google Ads is configured."""
        return self._available

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        """Get the circuit breaker instance."""
        return self._circuit_breaker

    @property
    def metrics_endpoint(self) -> str:
        return (
            f"/{self._api_version}/customers/{self._customer_id}"
            ":generateKeywordHistoricalMetrics"
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
        logger.info("Google Ads client closed")

    def _backoff(self, attempt: int) -> float:
        return self._retry_delay * (2**attempt)

    async def _send(
        self,
        url: str,
        stage: str,
        request_id: str,
        json: dict[str, Any] | None = None,
        data: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """POST to a Google endpoint with retry logic.

        Args:
            url: Absolute endpoint URL.
            stage: "token_exchange" or "keyword_metrics" (for logs).
            request_id: Correlation id shared by both stages of one lookup.

        Returns:
            Parsed JSON body.

        Raises:
            GoogleAdsError: On API errors (and subclasses for timeouts,
                rate limits and auth failures).
        """
        client = await self._get_client()
        endpoint = url.replace(GOOGLE_ADS_API_URL, "")
        last_error: GoogleAdsError | None = None

        for attempt in range(self._max_retries):
            attempt_start = time.monotonic()
            has_retry = attempt < self._max_retries - 1
            google_ads_logger.api_call_start(
                endpoint, retry_attempt=attempt, request_id=request_id
            )

            try:
                response = await client.request(
                    "POST", url, json=json, data=data, headers=headers
                )
            except httpx.TimeoutException:
                duration_ms = (time.monotonic() - attempt_start) * 1000
                google_ads_logger.timeout(endpoint, self._timeout)
                google_ads_logger.api_call_error(
                    endpoint,
                    duration_ms,
                    None,
                    "Request timed out",
                    "TimeoutError",
                    retry_attempt=attempt,
                    request_id=request_id,
                )
                last_error = GoogleAdsTimeoutError(
                    f"Request timed out after {self._timeout}s", request_id=request_id
                )
                if has_retry:
                    await asyncio.sleep(self._backoff(attempt))
                continue
            except httpx.RequestError as e:
                duration_ms = (time.monotonic() - attempt_start) * 1000
                google_ads_logger.api_call_error(
                    endpoint,
                    duration_ms,
                    None,
                    str(e),
                    type(e).__name__,
                    retry_attempt=attempt,
                    request_id=request_id,
                )
                last_error = GoogleAdsError(f"Request failed: {e}", request_id=request_id)
                if has_retry:
                    await asyncio.sleep(self._backoff(attempt))
                continue

            duration_ms = (time.monotonic() - attempt_start) * 1000
            status_code = response.status_code

            if status_code == 429:
                retry_after_str = response.headers.get("retry-after")
                try:
                    retry_after = float(retry_after_str) if retry_after_str else None
                except ValueError:
                    retry_after = None
                google_ads_logger.rate_limit(
                    endpoint, retry_after=retry_after, request_id=request_id
                )
                last_error = GoogleAdsRateLimitError(
                    "Rate limit or quota exceeded",
                    retry_after=retry_after,
                    request_id=request_id,
                )
                if has_retry:
                    delay = self._backoff(attempt)
                    if retry_after is not None and retry_after <= MAX_RETRY_AFTER_SECONDS:
                        delay = retry_after
                    await asyncio.sleep(delay)
                continue

            # The token endpoint reports a revoked or wrong grant as 400
            if status_code in (401, 403) or (stage == "token_exchange" and status_code == 400):
                google_ads_logger.auth_failure(status_code, stage)
                google_ads_logger.api_call_error(
                    endpoint,
                    duration_ms,
                    status_code,
                    "Authentication failed",
                    "AuthError",
                    retry_attempt=attempt,
                    request_id=request_id,
                )
                raise GoogleAdsAuthError(
                    f"Authentication failed during {stage} ({status_code})",
                    status_code=status_code,
                    request_id=request_id,
                )

            if status_code >= 500:
                google_ads_logger.api_call_error(
                    endpoint,
                    duration_ms,
                    status_code,
                    f"Server error ({status_code})",
                    "ServerError",
                    retry_attempt=attempt,
                    request_id=request_id,
                )
                last_error = GoogleAdsError(
                    f"Server error ({status_code})",
                    status_code=status_code,
                    request_id=request_id,
                )
                if has_retry:
                    await asyncio.sleep(self._backoff(attempt))
                continue

            if status_code >= 400:
                error_text = response.text[:500] if response.content else "Client error"
                google_ads_logger.api_call_error(
                    endpoint,
                    duration_ms,
                    status_code,
                    error_text,
                    "ClientError",
                    retry_attempt=attempt,
                    request_id=request_id,
                )
                raise GoogleAdsError(
                    f"Client error ({status_code})",
                    status_code=status_code,
                    response_body=error_text,
                    request_id=request_id,
                )

            try:
                body = response.json()
            except ValueError as e:
                raise GoogleAdsError(
                    f"Unparseable response from {stage}: {e}",
                    status_code=status_code,
                    request_id=request_id,
                ) from e

            google_ads_logger.api_call_success(endpoint, duration_ms, request_id=request_id)
            return body

        if last_error:
            raise last_error
        raise GoogleAdsError("Request failed after all retries", request_id=request_id)

    async def get_access_token(self, request_id: str | None = None) -> str:
        """Exchange the refresh token for a short-lived access token.

        Raises:
            GoogleAdsAuthError: If the exchange is rejected or returns no token.
            GoogleAdsError: On other failures.
        """
        request_id = request_id or str(uuid.uuid4())[:8]

        if (
            self._cache_access_token
            and self._access_token
            and time.monotonic() < self._token_expires_at
        ):
            google_ads_logger.token_exchange(0.0, None, cached=True)
            return self._access_token

        start_time = time.monotonic()
        body = await self._send(
            GOOGLE_OAUTH_TOKEN_URL,
            stage="token_exchange",
            request_id=request_id,
            data={
                "client_id": self._client_id or "",
                "client_secret": self._client_secret or "",
                "refresh_token": self._refresh_token or "",
                "grant_type": "refresh_token",
            },
        )

        access_token = body.get("access_token") if isinstance(body, dict) else None
        if not access_token:
            raise GoogleAdsAuthError(
                "Credential exchange returned no access token", request_id=request_id
            )

        expires_in = body.get("expires_in")
        if self._cache_access_token and isinstance(expires_in, int | float):
            self._access_token = access_token
            self._token_expires_at = (
                time.monotonic() + float(expires_in) - TOKEN_EXPIRY_MARGIN_SECONDS
            )

        google_ads_logger.token_exchange(
            (time.monotonic() - start_time) * 1000,
            expires_in if isinstance(expires_in, int) else None,
            cached=False,
        )
        return access_token

    def _build_headers(self, access_token: str) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {access_token}",
            "developer-token": self._developer_token or "",
            "Content-Type": "application/json",
        }
        if self._login_customer_id:
            headers["login-customer-id"] = self._login_customer_id
        return headers

    async def generate_historical_metrics(
        self,
        keywords: list[str],
        geography: str,
        language: str,
    ) -> HistoricalMetricsResult:
        """Fetch Keyword Planner metrics for a batch of keywords.

        The whole batch goes out in a single request scoped to one
        geography and language.

        Args:
            keywords: Keyword texts to look up.
            geography: Geo target constant id or resource name.
            language: Language constant id or resource name.

        Returns:
            HistoricalMetricsResult; success is False on any provider failure.
        """
        start_time = time.monotonic()
        request_id = str(uuid.uuid4())[:8]

        if not self._available:
            google_ads_logger.graceful_fallback(
                "generate_historical_metrics", "Google Ads not configured"
            )
            return HistoricalMetricsResult(
                success=False,
                error="Google Ads not configured (missing credentials)",
                request_id=request_id,
            )

        if not keywords:
            return HistoricalMetricsResult(success=True, request_id=request_id)

        if not await self._circuit_breaker.can_execute():
            google_ads_logger.graceful_fallback("generate_historical_metrics", "Circuit breaker open")
            return HistoricalMetricsResult(
                success=False,
                error="Circuit breaker is open",
                request_id=request_id,
            )

        google_ads_logger.keyword_metrics_start(keywords, geography, language)

        payload = {
            "language": to_language_constant(language),
            "geoTargetConstants": [to_geo_target_constant(geography)],
            "keywordPlanNetwork": KEYWORD_PLAN_NETWORK,
            "keywords": keywords,
        }

        try:
            access_token = await self.get_access_token(request_id)
            body = await self._send(
                GOOGLE_ADS_API_URL + self.metrics_endpoint,
                stage="keyword_metrics",
                request_id=request_id,
                json=payload,
                headers=self._build_headers(access_token),
            )
            rows = parse_historical_metrics(body)
        except GoogleAdsError as e:
            await self._circuit_breaker.record_failure()
            duration_ms = (time.monotonic() - start_time) * 1000
            google_ads_logger.keyword_metrics_complete(
                len(keywords), duration_ms, success=False
            )
            return HistoricalMetricsResult(
                success=False,
                error=str(e),
                duration_ms=duration_ms,
                request_id=request_id,
            )

        await self._circuit_breaker.record_success()
        duration_ms = (time.monotonic() - start_time) * 1000
        google_ads_logger.keyword_metrics_complete(
            len(keywords), duration_ms, success=True, results_count=len(rows)
        )
        return HistoricalMetricsResult(
            success=True,
            rows=rows,
            duration_ms=duration_ms,
            request_id=request_id,
        )


# ---------------------------------------------------------------------------
# Client lifecycle functions
# ---------------------------------------------------------------------------

google_ads_client: GoogleAdsClient | None = None


async def init_google_ads() -> GoogleAdsClient:
    """Initialize the application-wide Google Ads client."""
    global google_ads_client
    if google_ads_client is None:
        google_ads_client = GoogleAdsClient()
        if google_ads_client.available:
            logger.info("Google Ads client initialized")
        else:
            logger.info("Google Ads not configured (missing GOOGLE_ADS_* credentials)")
    return google_ads_client


async def close_google_ads() -> None:
    """Close the application-wide Google Ads client."""
    global google_ads_client
    if google_ads_client:
        await google_ads_client.close()
        google_ads_client = None
