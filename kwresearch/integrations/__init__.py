"""Integrations layer - External service clients.

Integrations handle communication with external APIs and services.
They abstract the details of external service protocols.
"""

from kwresearch.integrations.google_ads import (
    GoogleAdsAuthError,
    GoogleAdsClient,
    GoogleAdsError,
    GoogleAdsRateLimitError,
    GoogleAdsTimeoutError,
    HistoricalMetrics,
    HistoricalMetricsResult,
    close_google_ads,
    init_google_ads,
)
from kwresearch.integrations.serpapi import (
    RelatedQueriesResult,
    SerpAPIClient,
    SerpAPIError,
    close_serpapi,
    init_serpapi,
)

__all__ = [
    # Google Ads
    "GoogleAdsAuthError",
    "GoogleAdsClient",
    "GoogleAdsError",
    "GoogleAdsRateLimitError",
    "GoogleAdsTimeoutError",
    "HistoricalMetrics",
    "HistoricalMetricsResult",
    "close_google_ads",
    "init_google_ads",
    # SerpAPI
    "RelatedQueriesResult",
    "SerpAPIClient",
    "SerpAPIError",
    "close_serpapi",
    "init_serpapi",
]
