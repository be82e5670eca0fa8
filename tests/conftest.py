"""Pytest configuration and fixtures.

Provides fixtures for:
- Settings override for testing
- A controllable clock for cache freshness tests
- Keyword research service wired with synthetic suggestions and a mocked
  metrics source (no network)
- FastAPI test client
"""

from collections.abc import Callable, Generator
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from kwresearch.core.config import Settings
from kwresearch.services.keyword_research import KeywordResearchService
from kwresearch.services.metrics import KeywordMetrics, MetricsSource
from kwresearch.services.pipeline import EnrichmentPipeline
from kwresearch.services.result_cache import ResultCache
from kwresearch.services.suggestions import SuggestionSource

# ---------------------------------------------------------------------------
# Settings Fixtures
# ---------------------------------------------------------------------------


def get_test_settings() -> Settings:
    """Get test settings with every provider unconfigured."""
    return Settings(
        app_name="Test App",
        app_version="0.0.1",
        debug=True,
        environment="test",
        log_level="DEBUG",
        log_format="text",
        serpapi_key=None,
        google_ads_client_id=None,
        google_ads_client_secret=None,
        google_ads_refresh_token=None,
        google_ads_developer_token=None,
        google_ads_customer_id=None,
    )


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Session-scoped test settings."""
    return get_test_settings()


# ---------------------------------------------------------------------------
# Clock Fixtures
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 15, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Service Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_metrics() -> Callable[..., KeywordMetrics]:
    """Factory for KeywordMetrics rows."""

    def _make(
        volume: int,
        competition_index: int = 50,
        low: str = "0.50",
        high: str = "1.50",
    ) -> KeywordMetrics:
        return KeywordMetrics(
            avg_monthly_volume=volume,
            low_bid_usd=Decimal(low),
            high_bid_usd=Decimal(high),
            competition_index=competition_index,
        )

    return _make


@pytest.fixture
def mock_metrics_source() -> AsyncMock:
    """MetricsSource double; returns no metrics unless configured."""
    source = AsyncMock(spec=MetricsSource)
    source.fetch_metrics.return_value = {}
    return source


@pytest.fixture
def result_cache(fake_clock: FakeClock) -> ResultCache:
    return ResultCache(clock=fake_clock)


@pytest.fixture
def keyword_service(
    mock_metrics_source: AsyncMock,
    result_cache: ResultCache,
) -> KeywordResearchService:
    """Service with synthetic suggestions, mocked metrics and a fresh cache."""
    pipeline = EnrichmentPipeline(SuggestionSource(serpapi=None), mock_metrics_source)
    return KeywordResearchService(pipeline, result_cache)


# ---------------------------------------------------------------------------
# FastAPI Test Client Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def app(test_settings: Settings, keyword_service: KeywordResearchService):
    """Create FastAPI app for testing with an injected service."""
    from kwresearch.main import create_app

    with patch("kwresearch.main.get_settings", return_value=test_settings):
        return create_app(service=keyword_service)


@pytest.fixture
def client(app, test_settings: Settings) -> Generator[TestClient, None, None]:
    """Create synchronous test client.

    The lifespan is not entered, so no provider clients are created.
    """
    with patch("kwresearch.main.get_settings", return_value=test_settings):
        yield TestClient(app)


# ---------------------------------------------------------------------------
# Utility Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_httpx_response() -> Callable[..., MagicMock]:
    """Factory for mocked httpx responses."""

    def _make(
        status_code: int = 200,
        json_data: object = None,
        headers: dict[str, str] | None = None,
        text: str = "",
    ) -> MagicMock:
        response = MagicMock()
        response.status_code = status_code
        response.headers = headers or {}
        response.text = text
        response.content = text.encode()
        response.json.return_value = json_data if json_data is not None else {}
        return response

    return _make
