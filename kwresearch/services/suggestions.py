"""SuggestionSource: raw keyword candidates for a seed phrase.

Step 1 of keyword research. Candidates come from SerpAPI's related searches
and related questions for the seed. When SerpAPI is unconfigured, fails, or
returns too few distinct phrases, the list is topped up from a deterministic
synthetic generator that combines the seed with a fixed vocabulary, so the
metrics step always has enough raw material and tests need no network.

Suggestion sourcing is best-effort: provider failures never propagate.
"""

import time
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

from kwresearch.core.logging import get_logger
from kwresearch.integrations.serpapi import SerpAPIClient

logger = get_logger(__name__)

# Candidate list is topped up to this many distinct phrases
MIN_CANDIDATES = 50

PREFIXES: tuple[str, ...] = (
    "best",
    "top",
    "how to",
    "what is",
    "why",
    "when",
    "where",
    "affordable",
    "cheap",
    "local",
)

SUFFIXES: tuple[str, ...] = (
    "near me",
    "tips",
    "guide",
    "tutorial",
    "for beginners",
    "review",
    "comparison",
    "vs",
    "online",
    "service",
    "cost",
    "price",
    "benefits",
    "ideas",
    "examples",
    "2025",
    "today",
)

QUESTION_WORDS: tuple[str, ...] = (
    "how",
    "what",
    "why",
    "when",
    "where",
    "which",
    "who",
    "can",
)

# One full cycle of every prefix/suffix pairing across the four templates
SYNTHETIC_STREAM_LENGTH = 4 * len(PREFIXES) * len(SUFFIXES)


class CandidateOrigin(str, Enum):
    """Where a keyword candidate came from."""

    RELATED_SEARCH = "related_search"
    RELATED_QUESTION = "related_question"
    SYNTHETIC = "synthetic"


@dataclass(frozen=True)
class KeywordCandidate:
    """A raw keyword suggestion.

    Attributes:
        text: Suggested phrase, case preserved. Not unique across a batch.
        source_rank: Position in the candidate list (0-based).
        origin: Which source produced the phrase.
    """

    text: str
    source_rank: int
    origin: CandidateOrigin = CandidateOrigin.SYNTHETIC


def synthetic_keyword(seed: str, index: int) -> str:
    """Build the synthetic variation at a given stream index.

    Templates rotate round-robin: prefix+seed, seed+suffix,
    prefix+seed+suffix, question+seed.
    """
    prefix = PREFIXES[index % len(PREFIXES)]
    suffix = SUFFIXES[(index // len(PREFIXES)) % len(SUFFIXES)]
    question = QUESTION_WORDS[index % len(QUESTION_WORDS)]

    variation = index % 4
    if variation == 0:
        return f"{prefix} {seed}"
    if variation == 1:
        return f"{seed} {suffix}"
    if variation == 2:
        return f"{prefix} {seed} {suffix}"
    return f"{question} {seed}"


def iter_synthetic_keywords(seed: str) -> Iterator[str]:
    """Lazily yield the deterministic synthetic variations of a seed.

    May yield the same phrase more than once; callers dedupe.
    """
    for index in range(SYNTHETIC_STREAM_LENGTH):
        yield synthetic_keyword(seed, index)


class SuggestionSource:
    """Gathers raw keyword candidates for a seed phrase.

    Example usage:
        source = SuggestionSource(serpapi_client)
        candidates = await source.fetch_candidates("yoga mats")
        texts = [c.text for c in candidates]
    """

    def __init__(
        self,
        serpapi: SerpAPIClient | None = None,
        min_candidates: int = MIN_CANDIDATES,
    ) -> None:
        """Initialize the suggestion source.

        Args:
            serpapi: SerpAPI client; None means synthetic suggestions only.
            min_candidates: Distinct candidates to top up to.
        """
        self._serpapi = serpapi
        self._min_candidates = min_candidates

    async def _fetch_related(self, seed: str) -> list[tuple[str, CandidateOrigin]]:
        if self._serpapi is None or not self._serpapi.available:
            logger.info(
                "SerpAPI not configured, using synthetic suggestions",
                extra={"seed": seed[:100]},
            )
            return []

        try:
            result = await self._serpapi.related_queries(seed)
        except Exception as e:
            logger.error(
                "Suggestion provider raised, using synthetic suggestions",
                extra={
                    "seed": seed[:100],
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )
            return []

        if not result.success:
            logger.warning(
                "Suggestion provider failed, using synthetic suggestions",
                extra={"seed": seed[:100], "error": result.error},
            )
            return []

        return [(q, CandidateOrigin.RELATED_SEARCH) for q in result.related_searches] + [
            (q, CandidateOrigin.RELATED_QUESTION) for q in result.related_questions
        ]

    async def fetch_candidates(self, seed: str) -> list[KeywordCandidate]:
        """Gather keyword candidates for a seed phrase.

        Args:
            seed: The seed phrase.

        Returns:
            Provider candidates (in provider order, duplicates kept) followed
            by synthetic candidates not already present, up to
            min_candidates distinct phrases when the stream allows.
        """
        start_time = time.monotonic()

        related = await self._fetch_related(seed)
        texts: list[tuple[str, CandidateOrigin]] = list(related)
        seen = {text.lower() for text, _ in texts}

        synthetic_added = 0
        if len(seen) < self._min_candidates:
            for phrase in iter_synthetic_keywords(seed):
                if len(seen) >= self._min_candidates:
                    break
                if phrase.lower() in seen:
                    continue
                seen.add(phrase.lower())
                texts.append((phrase, CandidateOrigin.SYNTHETIC))
                synthetic_added += 1

        candidates = [
            KeywordCandidate(text=text, source_rank=rank, origin=origin)
            for rank, (text, origin) in enumerate(texts)
        ]

        logger.info(
            "Keyword candidates gathered",
            extra={
                "seed": seed[:100],
                "provider_candidates": len(related),
                "synthetic_candidates": synthetic_added,
                "distinct_candidates": len(seen),
                "duration_ms": round((time.monotonic() - start_time) * 1000, 2),
            },
        )
        return candidates
