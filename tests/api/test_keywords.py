"""Tests for the keyword research API endpoint.

Tests cover:
- POST /api/v1/keywords/search returns ranked keywords
- Repeat requests are served from cache
- Blank keyword returns 400 without any provider call
- Missing keyword returns 422
- Unexpected failures return a structured 500
- Every response carries a request id
"""

from collections.abc import Callable
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from kwresearch.services.metrics import KeywordMetrics

SEARCH_URL = "/api/v1/keywords/search"


@pytest.fixture
def metrics_for_candidates(
    mock_metrics_source: AsyncMock, make_metrics: Callable[..., KeywordMetrics]
) -> AsyncMock:
    """Return metrics for the first five candidates of every batch."""

    async def _fetch(keywords: list[str], geography: str, language: str) -> dict:
        return {
            kw: make_metrics(100 * (i + 1), competition_index=20 * i, low="0.45", high="1.2")
            for i, kw in enumerate(keywords[:5])
        }

    mock_metrics_source.fetch_metrics.side_effect = _fetch
    return mock_metrics_source


class TestSearchKeywords:
    """Tests for POST /api/v1/keywords/search."""

    def test_returns_ranked_keywords(
        self, client: TestClient, metrics_for_candidates: AsyncMock
    ) -> None:
        response = client.post(SEARCH_URL, json={"keyword": "yoga mats"})

        assert response.status_code == 200
        data = response.json()
        assert data["keyword_count"] == 5
        assert data["cached"] is False
        assert data["country"] == "2840"
        assert data["language"] == "1000"

        volumes = [kw["volume"] for kw in data["keywords"]]
        assert volumes == [500, 400, 300, 200, 100]

        top = data["keywords"][0]
        assert set(top) == {
            "keyword",
            "volume",
            "cpc",
            "cpc_low",
            "cpc_high",
            "competition",
            "competition_index",
        }
        assert top["cpc"] == "$0.45 - $1.20"
        assert top["cpc_low"] == 0.45
        assert top["competition_index"] == 80
        assert top["competition"] == "high"

    def test_repeat_request_served_from_cache(
        self, client: TestClient, metrics_for_candidates: AsyncMock
    ) -> None:
        first = client.post(SEARCH_URL, json={"keyword": "yoga mats"})
        second = client.post(SEARCH_URL, json={"keyword": "yoga mats"})

        assert first.json()["cached"] is False
        assert second.json()["cached"] is True
        assert second.json()["keywords"] == first.json()["keywords"]
        assert metrics_for_candidates.fetch_metrics.await_count == 1

    def test_country_and_language_passed_through(
        self, client: TestClient, mock_metrics_source: AsyncMock
    ) -> None:
        response = client.post(
            SEARCH_URL,
            json={"keyword": "yoga mats", "country": "2826", "language": "1003"},
        )

        assert response.status_code == 200
        assert response.json()["country"] == "2826"
        _, kwargs = mock_metrics_source.fetch_metrics.call_args
        assert kwargs == {"geography": "2826", "language": "1003"}

    def test_no_metrics_returns_empty_list(self, client: TestClient) -> None:
        response = client.post(SEARCH_URL, json={"keyword": "yoga mats"})

        assert response.status_code == 200
        assert response.json()["keywords"] == []
        assert response.json()["keyword_count"] == 0

    @pytest.mark.parametrize("keyword", ["", "   "])
    def test_blank_keyword_returns_400(
        self, client: TestClient, mock_metrics_source: AsyncMock, keyword: str
    ) -> None:
        response = client.post(SEARCH_URL, json={"keyword": keyword})

        assert response.status_code == 400
        data = response.json()
        assert data["code"] == "VALIDATION_ERROR"
        assert "keyword" in data["error"]
        assert data["request_id"] == response.headers["X-Request-ID"]
        mock_metrics_source.fetch_metrics.assert_not_called()

    def test_missing_keyword_returns_422(self, client: TestClient) -> None:
        response = client.post(SEARCH_URL, json={"country": "2840"})

        assert response.status_code == 422
        data = response.json()
        assert data["code"] == "VALIDATION_ERROR"
        assert "keyword" in data["error"]

    def test_unexpected_failure_returns_500(
        self, client: TestClient, mock_metrics_source: AsyncMock
    ) -> None:
        mock_metrics_source.fetch_metrics.side_effect = RuntimeError("database on fire")

        response = client.post(SEARCH_URL, json={"keyword": "yoga mats"})

        assert response.status_code == 500
        data = response.json()
        assert data["code"] == "INTERNAL_ERROR"
        assert data["error"] == "Internal server error"
        assert "database on fire" not in response.text
        assert data["request_id"] == response.headers["X-Request-ID"]
