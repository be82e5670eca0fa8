"""Pydantic schemas for API request/response validation."""

from kwresearch.schemas.keyword_research import (
    EnrichedKeywordResponse,
    ErrorResponse,
    KeywordSearchRequest,
    KeywordSearchResponse,
)

__all__ = [
    "EnrichedKeywordResponse",
    "ErrorResponse",
    "KeywordSearchRequest",
    "KeywordSearchResponse",
]
