"""Services layer - Business logic and orchestration.

Services coordinate the provider integrations to implement keyword
research. They contain no direct external API access - that's delegated
to the integrations layer.
"""

from kwresearch.services.keyword_research import (
    KeywordResearchResult,
    KeywordResearchService,
    KeywordResearchServiceError,
    KeywordResearchValidationError,
    build_keyword_research_service,
)
from kwresearch.services.metrics import KeywordMetrics, MetricsSource
from kwresearch.services.pipeline import (
    CompetitionLevel,
    EnrichedKeyword,
    EnrichmentPipeline,
    PipelineStats,
    classify_competition,
    fuse_and_rank,
)
from kwresearch.services.result_cache import CacheEntry, CacheStats, ResultCache
from kwresearch.services.suggestions import (
    CandidateOrigin,
    KeywordCandidate,
    SuggestionSource,
    iter_synthetic_keywords,
)

__all__ = [
    # Keyword research
    "KeywordResearchResult",
    "KeywordResearchService",
    "KeywordResearchServiceError",
    "KeywordResearchValidationError",
    "build_keyword_research_service",
    # Metrics
    "KeywordMetrics",
    "MetricsSource",
    # Pipeline
    "CompetitionLevel",
    "EnrichedKeyword",
    "EnrichmentPipeline",
    "PipelineStats",
    "classify_competition",
    "fuse_and_rank",
    # Result cache
    "CacheEntry",
    "CacheStats",
    "ResultCache",
    # Suggestions
    "CandidateOrigin",
    "KeywordCandidate",
    "SuggestionSource",
    "iter_synthetic_keywords",
]
