"""Keyword research API endpoints.

Provides keyword research for a seed phrase:
- POST /api/v1/keywords/search - Ranked related keywords with volume, CPC and competition

Error Logging Requirements:
- Log all incoming requests with method, path, request_id
- Log request body at DEBUG level (sanitize sensitive fields)
- Log response status and timing for every request
- Return structured error responses: {"error": str, "code": str, "request_id": str}
- Log 4xx errors at WARNING, 5xx at ERROR
"""

import time

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from kwresearch.core.logging import get_logger
from kwresearch.schemas.keyword_research import (
    EnrichedKeywordResponse,
    ErrorResponse,
    KeywordSearchRequest,
    KeywordSearchResponse,
)
from kwresearch.services.keyword_research import (
    KeywordResearchService,
    KeywordResearchValidationError,
)

logger = get_logger(__name__)

router = APIRouter()


def _get_request_id(request: Request) -> str:
    """Get request_id from request state."""
    return getattr(request.state, "request_id", "unknown")


def get_keyword_research_service(request: Request) -> KeywordResearchService:
    """Dependency returning the service wired at application startup."""
    return request.app.state.keyword_research_service


@router.post(
    "/search",
    response_model=KeywordSearchResponse,
    summary="Research keywords",
    description=(
        "Collect related searches for a seed phrase, enrich them with search volume, "
        "CPC and competition, and return up to 50 keywords ranked by volume."
    ),
    responses={
        400: {
            "description": "Validation error",
            "model": ErrorResponse,
            "content": {
                "application/json": {
                    "example": {
                        "error": "Validation error for keyword: Seed keyword cannot be empty",
                        "code": "VALIDATION_ERROR",
                        "request_id": "<request_id>",
                    }
                }
            },
        },
        500: {
            "description": "Internal error",
            "model": ErrorResponse,
            "content": {
                "application/json": {
                    "example": {
                        "error": "Internal server error",
                        "code": "INTERNAL_ERROR",
                        "request_id": "<request_id>",
                    }
                }
            },
        },
    },
)
async def search_keywords(
    request: Request,
    data: KeywordSearchRequest,
    service: KeywordResearchService = Depends(get_keyword_research_service),
) -> KeywordSearchResponse | JSONResponse:
    """Research keywords related to a seed phrase.

    Results for the same (keyword, country, language) are served from cache
    for 24 hours.
    """
    request_id = _get_request_id(request)
    start_time = time.monotonic()

    logger.debug(
        "Keyword search request",
        extra={
            "request_id": request_id,
            "keyword": data.keyword[:100],
            "country": data.country,
            "language": data.language,
        },
    )

    try:
        result = await service.research(
            data.keyword,
            geography=data.country,
            language=data.language,
        )
    except KeywordResearchValidationError as e:
        logger.warning(
            "Keyword search validation error",
            extra={
                "request_id": request_id,
                "field": e.field,
                "value": str(e.value)[:100],
                "error_message": e.message,
            },
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": str(e),
                "code": "VALIDATION_ERROR",
                "request_id": request_id,
            },
        )
    except Exception as e:
        logger.error(
            "Keyword search failed",
            extra={
                "request_id": request_id,
                "keyword": data.keyword[:100],
                "error_type": type(e).__name__,
                "error_message": str(e),
            },
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal server error",
                "code": "INTERNAL_ERROR",
                "request_id": request_id,
            },
        )

    duration_ms = (time.monotonic() - start_time) * 1000
    logger.info(
        "Keyword search complete",
        extra={
            "request_id": request_id,
            "keyword": data.keyword[:100],
            "keyword_count": result.keyword_count,
            "cached": result.cached,
            "duration_ms": round(duration_ms, 2),
        },
    )

    return KeywordSearchResponse(
        keywords=[EnrichedKeywordResponse.from_keyword(kw) for kw in result.keywords],
        keyword_count=result.keyword_count,
        country=result.geography,
        language=result.language,
        cached=result.cached,
        duration_ms=round(duration_ms, 2),
    )
