"""KeywordResearchService: cache-first entry point for keyword research.

Validates the request, serves a fresh cached result when one exists, and
otherwise runs the enrichment pipeline and caches its output.

ERROR LOGGING REQUIREMENTS:
- Log method entry/exit at DEBUG level with parameters (sanitized)
- Log all exceptions with full stack trace and context
- Include seed, geography and language in all service logs
- Log validation failures with field names and rejected values
- Log cache hit/miss at INFO level
"""

import time
from dataclasses import dataclass, field
from datetime import timedelta

from kwresearch.core.config import Settings, get_settings
from kwresearch.core.logging import get_logger
from kwresearch.integrations.google_ads import GoogleAdsClient
from kwresearch.integrations.serpapi import SerpAPIClient
from kwresearch.services.metrics import MetricsSource
from kwresearch.services.pipeline import EnrichedKeyword, EnrichmentPipeline
from kwresearch.services.result_cache import ResultCache
from kwresearch.services.suggestions import SuggestionSource

logger = get_logger(__name__)


class KeywordResearchServiceError(Exception):
    """Base exception for keyword research service errors."""

    pass


class KeywordResearchValidationError(KeywordResearchServiceError):
    """Raised when the request is invalid."""

    def __init__(self, field: str, value: str, message: str) -> None:
        super().__init__(f"Validation error for {field}: {message}")
        self.field = field
        self.value = value
        self.message = message


@dataclass
class KeywordResearchResult:
    """Result of a keyword research request."""

    keywords: list[EnrichedKeyword] = field(default_factory=list)
    geography: str = ""
    language: str = ""
    cached: bool = False
    duration_ms: float = 0.0

    @property
    def keyword_count(self) -> int:
        return len(self.keywords)


class KeywordResearchService:
    """Cache-first keyword research.

    Example usage:
        service = KeywordResearchService(pipeline, ResultCache())
        result = await service.research("yoga mats", "2840", "1000")
    """

    def __init__(
        self,
        pipeline: EnrichmentPipeline,
        cache: ResultCache,
        default_geography: str = "2840",
        default_language: str = "1000",
    ) -> None:
        self._pipeline = pipeline
        self._cache = cache
        self._default_geography = default_geography
        self._default_language = default_language

    @property
    def cache(self) -> ResultCache:
        return self._cache

    async def research(
        self,
        seed: str,
        geography: str | None = None,
        language: str | None = None,
    ) -> KeywordResearchResult:
        """Research keywords for a seed phrase.

        Args:
            seed: Seed phrase (required, non-blank). Surrounding whitespace
                is trimmed before the cache lookup.
            geography: Geo target constant id. Defaults to United States.
            language: Language constant id. Defaults to English.

        Returns:
            KeywordResearchResult with ranked keywords.

        Raises:
            KeywordResearchValidationError: If the seed is missing or blank.
        """
        start_time = time.monotonic()
        geography = geography or self._default_geography
        language = language or self._default_language

        logger.debug(
            "Keyword research started",
            extra={
                "seed": (seed or "")[:100],
                "geography": geography,
                "language": language,
            },
        )

        if not seed or not seed.strip():
            logger.warning(
                "Keyword research validation failed - empty seed",
                extra={"field": "keyword", "value": seed},
            )
            raise KeywordResearchValidationError(
                "keyword", seed or "", "Seed keyword cannot be empty"
            )

        seed = seed.strip()
        key = (seed, geography, language)

        entry = self._cache.get(key)
        if entry is not None:
            duration_ms = (time.monotonic() - start_time) * 1000
            logger.info(
                "Returning cached keyword research",
                extra={
                    "seed": seed[:100],
                    "geography": geography,
                    "language": language,
                    "keyword_count": len(entry.results),
                    "duration_ms": round(duration_ms, 2),
                },
            )
            return KeywordResearchResult(
                keywords=list(entry.results),
                geography=geography,
                language=language,
                cached=True,
                duration_ms=duration_ms,
            )

        try:
            keywords = await self._pipeline.run(seed, geography=geography, language=language)
        except Exception as e:
            logger.error(
                "Keyword research failed",
                extra={
                    "seed": seed[:100],
                    "geography": geography,
                    "language": language,
                    "error_type": type(e).__name__,
                    "error": str(e),
                },
                exc_info=True,
            )
            raise

        self._cache.put(key, keywords)

        duration_ms = (time.monotonic() - start_time) * 1000
        logger.info(
            "Keyword research complete",
            extra={
                "seed": seed[:100],
                "geography": geography,
                "language": language,
                "keyword_count": len(keywords),
                "duration_ms": round(duration_ms, 2),
            },
        )
        return KeywordResearchResult(
            keywords=keywords,
            geography=geography,
            language=language,
            cached=False,
            duration_ms=duration_ms,
        )


def build_keyword_research_service(
    serpapi: SerpAPIClient | None,
    google_ads: GoogleAdsClient | None,
    settings: Settings | None = None,
) -> KeywordResearchService:
    """Wire the sources, pipeline and cache into a service."""
    settings = settings or get_settings()
    pipeline = EnrichmentPipeline(SuggestionSource(serpapi), MetricsSource(google_ads))
    cache = ResultCache(ttl=timedelta(hours=settings.result_cache_ttl_hours))
    return KeywordResearchService(
        pipeline,
        cache,
        default_geography=settings.default_geography,
        default_language=settings.default_language,
    )
