"""EnrichmentPipeline: fuse suggestions with metrics, filter, classify, rank.

Steps, in order:
1. Gather raw candidates for the seed (SuggestionSource)
2. Fetch metrics for the whole candidate batch (MetricsSource)
3. Walk metrics rows in provider order: drop case-insensitive duplicates,
   phrases over MAX_WORDS words and phrases containing an excluded term;
   classify competition for the rest
4. Stable sort by volume, highest first
5. Keep the top MAX_RESULTS

The thresholds, word cap and exclusion vocabulary are product policy.
Candidates without metrics never reach the output.
"""

import time
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from kwresearch.core.logging import get_logger
from kwresearch.services.metrics import KeywordMetrics, MetricsSource
from kwresearch.services.suggestions import SuggestionSource

logger = get_logger(__name__)

MAX_RESULTS = 50
MAX_WORDS = 6

# Substring match against the lowercased keyword
EXCLUDED_TERMS: tuple[str, ...] = (
    "ai",
    "artificial intelligence",
    "machine learning",
    "chatgpt",
    "gpt",
)

HIGH_COMPETITION_THRESHOLD = 66
MEDIUM_COMPETITION_THRESHOLD = 33

SLOW_OPERATION_THRESHOLD_MS = 1000


class CompetitionLevel(str, Enum):
    """Competitiveness label derived from the competition index."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def classify_competition(competition_index: int) -> CompetitionLevel:
    """Label a 0-100 competition index: >66 high, >33 medium, else low."""
    if competition_index > HIGH_COMPETITION_THRESHOLD:
        return CompetitionLevel.HIGH
    if competition_index > MEDIUM_COMPETITION_THRESHOLD:
        return CompetitionLevel.MEDIUM
    return CompetitionLevel.LOW


def word_count(text: str) -> int:
    return len(text.split())


def contains_excluded_term(text: str) -> bool:
    lowered = text.lower()
    return any(term in lowered for term in EXCLUDED_TERMS)


@dataclass(frozen=True)
class EnrichedKeyword:
    """A keyword with its paid-search metrics, ready for output."""

    keyword: str
    volume: int
    cpc_range: tuple[Decimal, Decimal]
    competition: CompetitionLevel
    competition_index: int

    @property
    def cpc(self) -> str:
        """Bid range for display, e.g. "$0.45 - $1.20"."""
        low, high = self.cpc_range
        return f"${low:.2f} - ${high:.2f}"

    @classmethod
    def from_metrics(cls, keyword: str, metrics: KeywordMetrics) -> "EnrichedKeyword":
        return cls(
            keyword=keyword,
            volume=metrics.avg_monthly_volume,
            cpc_range=(metrics.low_bid_usd, metrics.high_bid_usd),
            competition=classify_competition(metrics.competition_index),
            competition_index=metrics.competition_index,
        )


@dataclass
class PipelineStats:
    """Counters for a single pipeline run."""

    candidates: int = 0
    metrics_rows: int = 0
    duplicates: int = 0
    too_long: int = 0
    excluded: int = 0
    accepted: int = 0
    returned: int = 0


def fuse_and_rank(
    metrics: dict[str, KeywordMetrics],
    stats: PipelineStats | None = None,
    max_results: int = MAX_RESULTS,
) -> list[EnrichedKeyword]:
    """Apply dedup, filters, classification and ranking to metrics rows.

    Args:
        metrics: Keyword text to metrics, in provider order.
        stats: Optional counters to update.
        max_results: Output cap.

    Returns:
        Enriched keywords sorted by volume (descending, stable).
    """
    stats = stats if stats is not None else PipelineStats()
    stats.metrics_rows = len(metrics)

    seen: set[str] = set()
    accepted: list[EnrichedKeyword] = []

    for text, keyword_metrics in metrics.items():
        lowered = text.lower()
        if lowered in seen:
            stats.duplicates += 1
            continue
        seen.add(lowered)

        if word_count(text) > MAX_WORDS:
            stats.too_long += 1
            continue

        if contains_excluded_term(text):
            stats.excluded += 1
            continue

        accepted.append(EnrichedKeyword.from_metrics(text, keyword_metrics))

    stats.accepted = len(accepted)

    # sorted() is stable, so equal volumes keep provider order
    ranked = sorted(accepted, key=lambda kw: kw.volume, reverse=True)[:max_results]
    stats.returned = len(ranked)
    return ranked


class EnrichmentPipeline:
    """Runs keyword research for one seed phrase.

    Example usage:
        pipeline = EnrichmentPipeline(SuggestionSource(serpapi), MetricsSource(google_ads))
        keywords = await pipeline.run("yoga mats", geography="2840", language="1000")
    """

    def __init__(
        self,
        suggestions: SuggestionSource,
        metrics: MetricsSource,
        max_results: int = MAX_RESULTS,
    ) -> None:
        self._suggestions = suggestions
        self._metrics = metrics
        self._max_results = max_results

    async def run(
        self,
        seed: str,
        geography: str,
        language: str,
    ) -> list[EnrichedKeyword]:
        """Research keywords for a seed phrase.

        Returns:
            Ranked enriched keywords; empty when no metrics are available.
        """
        start_time = time.monotonic()
        stats = PipelineStats()

        candidates = await self._suggestions.fetch_candidates(seed)
        stats.candidates = len(candidates)

        metrics = await self._metrics.fetch_metrics(
            [candidate.text for candidate in candidates],
            geography=geography,
            language=language,
        )

        results = fuse_and_rank(metrics, stats, self._max_results)
        duration_ms = (time.monotonic() - start_time) * 1000

        log_extra = {
            "seed": seed[:100],
            "geography": geography,
            "language": language,
            "candidates": stats.candidates,
            "metrics_rows": stats.metrics_rows,
            "duplicates": stats.duplicates,
            "too_long": stats.too_long,
            "excluded": stats.excluded,
            "accepted": stats.accepted,
            "returned": stats.returned,
            "duration_ms": round(duration_ms, 2),
        }
        if not metrics:
            logger.warning("No keyword metrics available, returning empty result", extra=log_extra)
        else:
            logger.info("Keyword enrichment complete", extra=log_extra)

        if duration_ms > SLOW_OPERATION_THRESHOLD_MS:
            logger.warning(
                "Slow keyword enrichment",
                extra={
                    "seed": seed[:100],
                    "duration_ms": round(duration_ms, 2),
                    "threshold_ms": SLOW_OPERATION_THRESHOLD_MS,
                },
            )

        return results
