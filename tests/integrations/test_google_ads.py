"""Unit tests for the Google Ads API integration client.

Tests cover:
- Historical metrics response parsing (int64-as-string, clamping, dropped rows, close variants)
- Resource name expansion for geography and language ids
- generate_historical_metrics() with mocked credential exchange and metrics call
- Payload and header construction (whole batch in one request)
- Credential exchange per call, and opt-in token reuse
- Retry logic with various error codes, and an explicit retry count
- Auth failures are not retried
- Circuit breaker state transitions
- Credentials never appear in logs

Uses unittest.mock with httpx for mocking HTTP requests.
"""

from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from kwresearch.core.circuit_breaker import CircuitState
from kwresearch.integrations.google_ads import (
    GOOGLE_ADS_API_URL,
    GOOGLE_OAUTH_TOKEN_URL,
    GoogleAdsAuthError,
    GoogleAdsClient,
    GoogleAdsError,
    parse_historical_metrics,
    to_geo_target_constant,
    to_language_constant,
)

# ---------------------------------------------------------------------------
# Test Data Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_settings() -> MagicMock:
    """Create mock settings for the Google Ads client."""
    settings = MagicMock()
    settings.google_ads_client_id = "client-id-abc"
    settings.google_ads_client_secret = "client-secret-xyz"
    settings.google_ads_refresh_token = "refresh-token-123"
    settings.google_ads_developer_token = "dev-token-456"
    settings.google_ads_customer_id = "123-456-7890"
    settings.google_ads_login_customer_id = None
    settings.google_ads_api_version = "v18"
    settings.google_ads_timeout = 5.0
    settings.google_ads_max_retries = 3
    settings.google_ads_retry_delay = 0.0
    settings.google_ads_cache_access_token = False
    settings.google_ads_circuit_failure_threshold = 2
    settings.google_ads_circuit_recovery_timeout = 60.0
    return settings


@pytest.fixture
def mock_httpx_client() -> AsyncMock:
    """Create a mock httpx AsyncClient."""
    return AsyncMock(spec=httpx.AsyncClient)


def build_client(settings: MagicMock, http_client: AsyncMock, **kwargs: object) -> GoogleAdsClient:
    with patch("kwresearch.integrations.google_ads.get_settings", return_value=settings):
        client = GoogleAdsClient(**kwargs)  # type: ignore[arg-type]
    client._client = http_client
    return client


@pytest.fixture
def google_ads_client(mock_settings: MagicMock, mock_httpx_client: AsyncMock) -> GoogleAdsClient:
    """Create a GoogleAdsClient with mocked settings and HTTP client."""
    return build_client(mock_settings, mock_httpx_client)


@pytest.fixture
def token_body() -> dict:
    return {"access_token": "ya29.access-token", "expires_in": 3599, "token_type": "Bearer"}


@pytest.fixture
def metrics_body() -> dict:
    """Sample generateKeywordHistoricalMetrics response body."""
    return {
        "results": [
            {
                "text": "yoga mats",
                "keywordMetrics": {
                    "avgMonthlySearches": "74000",
                    "competition": "HIGH",
                    "competitionIndex": "100",
                    "lowTopOfPageBidMicros": "450000",
                    "highTopOfPageBidMicros": "1200000",
                },
            },
            {
                "text": "best yoga mats",
                "keywordMetrics": {
                    "avgMonthlySearches": "22200",
                    "competitionIndex": "45",
                },
            },
            {"text": "yoga mats tutorial"},
        ]
    }


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------


class TestParseHistoricalMetrics:
    """Tests for parse_historical_metrics()."""

    def test_parses_int64_strings(self, metrics_body: dict) -> None:
        rows = parse_historical_metrics(metrics_body)

        assert [i.text for i in rows] == ["yoga mats", "best yoga mats"]
        first = rows[0]
        assert first.avg_monthly_searches == 74000
        assert first.low_top_of_page_bid_micros == 450000
        assert first.high_top_of_page_bid_micros == 1200000
        assert first.competition_index == 100

    def test_missing_metric_fields_count_as_zero(self, metrics_body: dict) -> None:
        second = parse_historical_metrics(metrics_body)[1]

        assert second.low_top_of_page_bid_micros == 0
        assert second.high_top_of_page_bid_micros == 0

    def test_clamps_out_of_range_values(self) -> None:
        body = {
            "results": [
                {
                    "text": "odd row",
                    "keywordMetrics": {
                        "avgMonthlySearches": "-5",
                        "competitionIndex": "140",
                    },
                }
            ]
        }
        row = parse_historical_metrics(body)[0]

        assert row.avg_monthly_searches == 0
        assert row.competition_index == 100

    def test_empty_body_yields_no_rows(self) -> None:
        assert parse_historical_metrics({}) == []

    def test_close_variants_share_the_row_metrics(self) -> None:
        body = {
            "results": [
                {
                    "text": "yoga mat",
                    "closeVariants": ["yoga mats", "Yoga Mat", "yoga mat"],
                    "keywordMetrics": {"avgMonthlySearches": "74000", "competitionIndex": "90"},
                }
            ]
        }

        rows = parse_historical_metrics(body)

        assert [r.text for r in rows] == ["yoga mat", "yoga mats", "Yoga Mat"]
        assert {r.avg_monthly_searches for r in rows} == {74000}
        assert {r.competition_index for r in rows} == {90}

    def test_malformed_metric_raises(self) -> None:
        body = {"results": [{"text": "x", "keywordMetrics": {"avgMonthlySearches": "lots"}}]}
        with pytest.raises(GoogleAdsError):
            parse_historical_metrics(body)

    def test_non_object_body_raises(self) -> None:
        with pytest.raises(GoogleAdsError):
            parse_historical_metrics(["results"])


class TestResourceNames:
    def test_bare_ids_are_expanded(self) -> None:
        assert to_geo_target_constant("2840") == "geoTargetConstants/2840"
        assert to_language_constant("1000") == "languageConstants/1000"

    def test_resource_names_pass_through(self) -> None:
        assert to_geo_target_constant("geoTargetConstants/2826") == "geoTargetConstants/2826"
        assert to_language_constant("languageConstants/1003") == "languageConstants/1003"


# ---------------------------------------------------------------------------
# generate_historical_metrics()
# ---------------------------------------------------------------------------


class TestGenerateHistoricalMetrics:
    """Tests for GoogleAdsClient.generate_historical_metrics()."""

    async def test_success(
        self,
        google_ads_client: GoogleAdsClient,
        mock_httpx_client: AsyncMock,
        mock_httpx_response: Callable[..., MagicMock],
        token_body: dict,
        metrics_body: dict,
    ) -> None:
        mock_httpx_client.request.side_effect = [
            mock_httpx_response(200, token_body),
            mock_httpx_response(200, metrics_body),
        ]

        result = await google_ads_client.generate_historical_metrics(
            ["yoga mats", "best yoga mats"], geography="2840", language="1000"
        )

        assert result.success is True
        assert len(result.rows) == 2
        assert result.error is None
        assert google_ads_client.circuit_breaker.state == CircuitState.CLOSED

    async def test_credential_exchange_request(
        self,
        google_ads_client: GoogleAdsClient,
        mock_httpx_client: AsyncMock,
        mock_httpx_response: Callable[..., MagicMock],
        token_body: dict,
        metrics_body: dict,
    ) -> None:
        mock_httpx_client.request.side_effect = [
            mock_httpx_response(200, token_body),
            mock_httpx_response(200, metrics_body),
        ]

        await google_ads_client.generate_historical_metrics(["yoga mats"], "2840", "1000")

        token_call = mock_httpx_client.request.call_args_list[0]
        assert token_call.args == ("POST", GOOGLE_OAUTH_TOKEN_URL)
        assert token_call.kwargs["data"] == {
            "client_id": "client-id-abc",
            "client_secret": "client-secret-xyz",
            "refresh_token": "refresh-token-123",
            "grant_type": "refresh_token",
        }

    async def test_metrics_request_payload_and_headers(
        self,
        google_ads_client: GoogleAdsClient,
        mock_httpx_client: AsyncMock,
        mock_httpx_response: Callable[..., MagicMock],
        token_body: dict,
        metrics_body: dict,
    ) -> None:
        mock_httpx_client.request.side_effect = [
            mock_httpx_response(200, token_body),
            mock_httpx_response(200, metrics_body),
        ]

        await google_ads_client.generate_historical_metrics(
            ["yoga mats", "cork yoga mats"], "2840", "1000"
        )

        metrics_call = mock_httpx_client.request.call_args_list[1]
        assert metrics_call.args == (
            "POST",
            f"{GOOGLE_ADS_API_URL}/v18/customers/1234567890:generateKeywordHistoricalMetrics",
        )
        payload = metrics_call.kwargs["json"]
        assert payload["language"] == "languageConstants/1000"
        assert payload["geoTargetConstants"] == ["geoTargetConstants/2840"]
        assert payload["keywords"] == ["yoga mats", "cork yoga mats"]
        assert payload["keywordPlanNetwork"] == "GOOGLE_SEARCH"
        assert "keywordSeed" not in payload

        headers = metrics_call.kwargs["headers"]
        assert headers["Authorization"] == "Bearer ya29.access-token"
        assert headers["developer-token"] == "dev-token-456"
        assert "login-customer-id" not in headers

    async def test_full_candidate_batch_is_one_request(
        self,
        google_ads_client: GoogleAdsClient,
        mock_httpx_client: AsyncMock,
        mock_httpx_response: Callable[..., MagicMock],
        token_body: dict,
        metrics_body: dict,
    ) -> None:
        keywords = [f"yoga mats variation {i}" for i in range(50)]
        mock_httpx_client.request.side_effect = [
            mock_httpx_response(200, token_body),
            mock_httpx_response(200, metrics_body),
        ]

        result = await google_ads_client.generate_historical_metrics(keywords, "2840", "1000")

        assert result.success is True
        assert mock_httpx_client.request.call_count == 2
        payload = mock_httpx_client.request.call_args_list[1].kwargs["json"]
        assert payload["keywords"] == keywords

    async def test_login_customer_id_header(
        self,
        mock_settings: MagicMock,
        mock_httpx_client: AsyncMock,
        mock_httpx_response: Callable[..., MagicMock],
        token_body: dict,
        metrics_body: dict,
    ) -> None:
        mock_settings.google_ads_login_customer_id = "999-888-7777"
        client = build_client(mock_settings, mock_httpx_client)
        mock_httpx_client.request.side_effect = [
            mock_httpx_response(200, token_body),
            mock_httpx_response(200, metrics_body),
        ]

        await client.generate_historical_metrics(["yoga mats"], "2840", "1000")

        headers = mock_httpx_client.request.call_args_list[1].kwargs["headers"]
        assert headers["login-customer-id"] == "9998887777"

    async def test_exchanges_credentials_on_every_call(
        self,
        google_ads_client: GoogleAdsClient,
        mock_httpx_client: AsyncMock,
        mock_httpx_response: Callable[..., MagicMock],
        token_body: dict,
        metrics_body: dict,
    ) -> None:
        mock_httpx_client.request.side_effect = [
            mock_httpx_response(200, token_body),
            mock_httpx_response(200, metrics_body),
            mock_httpx_response(200, token_body),
            mock_httpx_response(200, metrics_body),
        ]

        await google_ads_client.generate_historical_metrics(["yoga mats"], "2840", "1000")
        await google_ads_client.generate_historical_metrics(["yoga mats"], "2840", "1000")

        urls = [c.args[1] for c in mock_httpx_client.request.call_args_list]
        assert urls.count(GOOGLE_OAUTH_TOKEN_URL) == 2

    async def test_cached_access_token_is_reused(
        self,
        mock_settings: MagicMock,
        mock_httpx_client: AsyncMock,
        mock_httpx_response: Callable[..., MagicMock],
        token_body: dict,
        metrics_body: dict,
    ) -> None:
        client = build_client(mock_settings, mock_httpx_client, cache_access_token=True)
        mock_httpx_client.request.side_effect = [
            mock_httpx_response(200, token_body),
            mock_httpx_response(200, metrics_body),
            mock_httpx_response(200, metrics_body),
        ]

        await client.generate_historical_metrics(["yoga mats"], "2840", "1000")
        await client.generate_historical_metrics(["yoga mats"], "2840", "1000")

        urls = [c.args[1] for c in mock_httpx_client.request.call_args_list]
        assert urls.count(GOOGLE_OAUTH_TOKEN_URL) == 1

    async def test_unconfigured_client_makes_no_request(
        self, mock_settings: MagicMock, mock_httpx_client: AsyncMock
    ) -> None:
        mock_settings.google_ads_refresh_token = None
        client = build_client(mock_settings, mock_httpx_client)

        result = await client.generate_historical_metrics(["yoga mats"], "2840", "1000")

        assert client.available is False
        assert result.success is False
        mock_httpx_client.request.assert_not_called()

    async def test_empty_batch_makes_no_request(
        self, google_ads_client: GoogleAdsClient, mock_httpx_client: AsyncMock
    ) -> None:
        result = await google_ads_client.generate_historical_metrics([], "2840", "1000")

        assert result.success is True
        assert result.rows == []
        mock_httpx_client.request.assert_not_called()

    async def test_rejected_refresh_token_fails_without_retry(
        self,
        google_ads_client: GoogleAdsClient,
        mock_httpx_client: AsyncMock,
        mock_httpx_response: Callable[..., MagicMock],
    ) -> None:
        mock_httpx_client.request.return_value = mock_httpx_response(
            400, {"error": "invalid_grant"}, text='{"error": "invalid_grant"}'
        )

        result = await google_ads_client.generate_historical_metrics(["yoga mats"], "2840", "1000")

        assert result.success is False
        assert "token_exchange" in (result.error or "")
        assert mock_httpx_client.request.call_count == 1

    async def test_missing_access_token_is_auth_error(
        self,
        google_ads_client: GoogleAdsClient,
        mock_httpx_client: AsyncMock,
        mock_httpx_response: Callable[..., MagicMock],
    ) -> None:
        mock_httpx_client.request.return_value = mock_httpx_response(200, {"token_type": "Bearer"})

        with pytest.raises(GoogleAdsAuthError):
            await google_ads_client.get_access_token()

    async def test_retries_on_server_error_then_succeeds(
        self,
        google_ads_client: GoogleAdsClient,
        mock_httpx_client: AsyncMock,
        mock_httpx_response: Callable[..., MagicMock],
        token_body: dict,
        metrics_body: dict,
    ) -> None:
        mock_httpx_client.request.side_effect = [
            mock_httpx_response(200, token_body),
            mock_httpx_response(500, text="backend error"),
            mock_httpx_response(200, metrics_body),
        ]

        result = await google_ads_client.generate_historical_metrics(["yoga mats"], "2840", "1000")

        assert result.success is True
        assert mock_httpx_client.request.call_count == 3

    async def test_rate_limit_exhausts_retries(
        self,
        google_ads_client: GoogleAdsClient,
        mock_httpx_client: AsyncMock,
        mock_httpx_response: Callable[..., MagicMock],
        token_body: dict,
    ) -> None:
        mock_httpx_client.request.side_effect = [
            mock_httpx_response(200, token_body),
            mock_httpx_response(429, headers={"retry-after": "0"}),
            mock_httpx_response(429, headers={"retry-after": "0"}),
            mock_httpx_response(429, headers={"retry-after": "0"}),
        ]

        result = await google_ads_client.generate_historical_metrics(["yoga mats"], "2840", "1000")

        assert result.success is False
        assert "Rate limit" in (result.error or "")
        assert mock_httpx_client.request.call_count == 4

    async def test_explicit_zero_retries_makes_single_attempt(
        self,
        mock_settings: MagicMock,
        mock_httpx_client: AsyncMock,
        mock_httpx_response: Callable[..., MagicMock],
        token_body: dict,
    ) -> None:
        client = build_client(mock_settings, mock_httpx_client, max_retries=0)
        mock_httpx_client.request.side_effect = [
            mock_httpx_response(200, token_body),
            mock_httpx_response(503, text="unavailable"),
        ]

        result = await client.generate_historical_metrics(["yoga mats"], "2840", "1000")

        assert result.success is False
        assert mock_httpx_client.request.call_count == 2

    async def test_timeout_is_reported_not_raised(
        self, google_ads_client: GoogleAdsClient, mock_httpx_client: AsyncMock
    ) -> None:
        mock_httpx_client.request.side_effect = httpx.TimeoutException("timed out")

        result = await google_ads_client.generate_historical_metrics(["yoga mats"], "2840", "1000")

        assert result.success is False
        assert "timed out" in (result.error or "")

    async def test_client_error_is_not_retried(
        self,
        google_ads_client: GoogleAdsClient,
        mock_httpx_client: AsyncMock,
        mock_httpx_response: Callable[..., MagicMock],
        token_body: dict,
    ) -> None:
        mock_httpx_client.request.side_effect = [
            mock_httpx_response(200, token_body),
            mock_httpx_response(400, text="INVALID_ARGUMENT"),
        ]

        result = await google_ads_client.generate_historical_metrics(["yoga mats"], "2840", "1000")

        assert result.success is False
        assert "Client error (400)" in (result.error or "")
        assert mock_httpx_client.request.call_count == 2

    async def test_failures_open_circuit(
        self,
        google_ads_client: GoogleAdsClient,
        mock_httpx_client: AsyncMock,
        mock_httpx_response: Callable[..., MagicMock],
    ) -> None:
        mock_httpx_client.request.return_value = mock_httpx_response(401)

        await google_ads_client.generate_historical_metrics(["a"], "2840", "1000")
        await google_ads_client.generate_historical_metrics(["b"], "2840", "1000")
        assert google_ads_client.circuit_breaker.is_open is True

        mock_httpx_client.request.reset_mock()
        result = await google_ads_client.generate_historical_metrics(["c"], "2840", "1000")

        assert result.success is False
        assert result.error == "Circuit breaker is open"
        mock_httpx_client.request.assert_not_called()

    async def test_credentials_not_logged(
        self,
        google_ads_client: GoogleAdsClient,
        mock_httpx_client: AsyncMock,
        mock_httpx_response: Callable[..., MagicMock],
        token_body: dict,
        metrics_body: dict,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        mock_httpx_client.request.side_effect = [
            mock_httpx_response(200, token_body),
            mock_httpx_response(200, metrics_body),
        ]

        with caplog.at_level("DEBUG"):
            await google_ads_client.generate_historical_metrics(["yoga mats"], "2840", "1000")

        secrets = (
            "client-secret-xyz",
            "refresh-token-123",
            "dev-token-456",
            "ya29.access-token",
        )
        for record in caplog.records:
            rendered = record.getMessage() + str(record.__dict__)
            for secret in secrets:
                assert secret not in rendered
