"""Pydantic schemas for the keyword research API.

- KeywordSearchRequest: seed phrase plus optional geography/language ids
- EnrichedKeywordResponse: one ranked keyword with metrics
- KeywordSearchResponse: ranked keyword list
- ErrorResponse: structured error body {"error", "code", "request_id"}
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from kwresearch.services.pipeline import CompetitionLevel, EnrichedKeyword


class KeywordSearchRequest(BaseModel):
    """Request schema for researching keywords around a seed phrase."""

    keyword: str = Field(
        ...,
        max_length=200,
        description="Seed phrase to research",
        examples=["yoga mats"],
    )
    country: str | None = Field(
        None,
        max_length=64,
        description="Geo target constant id (default 2840, United States)",
        examples=["2840"],
    )
    language: str | None = Field(
        None,
        max_length=64,
        description="Language constant id (default 1000, English)",
        examples=["1000"],
    )

    @field_validator("keyword")
    @classmethod
    def strip_keyword(cls, v: str) -> str:
        """Trim surrounding whitespace; emptiness is rejected by the service."""
        return v.strip()

    @field_validator("country", "language")
    @classmethod
    def blank_to_default(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None


class EnrichedKeywordResponse(BaseModel):
    """A ranked keyword with paid-search metrics."""

    model_config = ConfigDict(from_attributes=True)

    keyword: str = Field(..., description="Keyword text as returned by the provider")
    volume: int = Field(..., ge=0, description="Average monthly searches")
    cpc: str = Field(..., description="Top-of-page bid range, e.g. '$0.45 - $1.20'")
    cpc_low: float = Field(..., ge=0, description="Low top-of-page bid (USD)")
    cpc_high: float = Field(..., ge=0, description="High top-of-page bid (USD)")
    competition: CompetitionLevel = Field(..., description="low, medium or high")
    competition_index: int = Field(..., ge=0, le=100, description="Competition index 0-100")

    @classmethod
    def from_keyword(cls, kw: EnrichedKeyword) -> "EnrichedKeywordResponse":
        low, high = kw.cpc_range
        return cls(
            keyword=kw.keyword,
            volume=kw.volume,
            cpc=kw.cpc,
            cpc_low=float(low),
            cpc_high=float(high),
            competition=kw.competition,
            competition_index=kw.competition_index,
        )


class KeywordSearchResponse(BaseModel):
    """Response schema for keyword research."""

    keywords: list[EnrichedKeywordResponse] = Field(
        default_factory=list,
        description="Keywords ranked by volume, highest first (at most 50)",
    )
    keyword_count: int = Field(0, description="Number of keywords returned")
    country: str = Field(..., description="Geo target constant id used")
    language: str = Field(..., description="Language constant id used")
    cached: bool = Field(False, description="Whether the result came from cache")
    duration_ms: float = Field(..., description="Processing time in milliseconds")


class ErrorResponse(BaseModel):
    """Structured error response."""

    error: str
    code: str
    request_id: str
