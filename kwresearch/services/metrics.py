"""MetricsSource: paid-search metrics for a batch of keyword candidates.

Step 2 of keyword research. Wraps the Google Ads client and converts its
raw historical metrics rows into KeywordMetrics keyed by keyword text.
Enrichment is best-effort: every provider failure yields an empty mapping,
and keywords the provider has no data for are simply absent (never
zero-filled).
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from kwresearch.core.logging import get_logger
from kwresearch.integrations.google_ads import GoogleAdsClient, HistoricalMetrics

logger = get_logger(__name__)

MICROS_PER_UNIT = Decimal(1_000_000)
CENT = Decimal("0.01")


def micros_to_usd(micros: int) -> Decimal:
    """Convert a bid in micros to dollars, rounded to the cent."""
    return (Decimal(micros) / MICROS_PER_UNIT).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class KeywordMetrics:
    """Paid-search metrics for one keyword.

    Attributes:
        avg_monthly_volume: Average monthly searches (>= 0)
        low_bid_usd: Low top-of-page bid in USD (>= 0)
        high_bid_usd: High top-of-page bid in USD (>= 0)
        competition_index: Advertiser competition, 0-100
    """

    avg_monthly_volume: int
    low_bid_usd: Decimal
    high_bid_usd: Decimal
    competition_index: int

    @classmethod
    def from_row(cls, row: HistoricalMetrics) -> "KeywordMetrics":
        """Create from a Google Ads historical metrics row."""
        return cls(
            avg_monthly_volume=row.avg_monthly_searches,
            low_bid_usd=micros_to_usd(row.low_top_of_page_bid_micros),
            high_bid_usd=micros_to_usd(row.high_top_of_page_bid_micros),
            competition_index=row.competition_index,
        )


class MetricsSource:
    """Looks up paid-search metrics for keyword batches."""

    def __init__(self, google_ads: GoogleAdsClient | None = None) -> None:
        """Initialize the metrics source.

        Args:
            google_ads: Google Ads client; None means no metrics are available.
        """
        self._google_ads = google_ads

    async def fetch_metrics(
        self,
        keywords: list[str],
        geography: str,
        language: str,
    ) -> dict[str, KeywordMetrics]:
        """Fetch metrics for a batch of keywords.

        Args:
            keywords: Keyword texts, sent to the provider in one request.
            geography: Geo target constant id.
            language: Language constant id.

        Returns:
            Mapping of keyword text to metrics, in the provider's return
            order. The first row wins when the provider repeats a text.
            Empty when the provider is unavailable or fails.
        """
        if not keywords:
            return {}

        if self._google_ads is None:
            logger.info(
                "Metrics provider not configured, no metrics available",
                extra={"keyword_count": len(keywords)},
            )
            return {}

        result = await self._google_ads.generate_historical_metrics(
            keywords, geography=geography, language=language
        )
        if not result.success:
            logger.warning(
                "Metrics provider failed, continuing without metrics",
                extra={
                    "keyword_count": len(keywords),
                    "geography": geography,
                    "language": language,
                    "error": result.error,
                    "request_id": result.request_id,
                },
            )
            return {}

        metrics: dict[str, KeywordMetrics] = {}
        for row in result.rows:
            if row.text not in metrics:
                metrics[row.text] = KeywordMetrics.from_row(row)

        logger.info(
            "Keyword metrics fetched",
            extra={
                "keyword_count": len(keywords),
                "metrics_count": len(metrics),
                "geography": geography,
                "language": language,
                "duration_ms": round(result.duration_ms, 2),
            },
        )
        return metrics
