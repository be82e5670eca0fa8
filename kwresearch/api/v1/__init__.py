"""API v1 router and endpoint organization."""

from fastapi import APIRouter

from kwresearch.api.v1.endpoints import keywords

router = APIRouter(tags=["v1"])

router.include_router(keywords.router, prefix="/keywords", tags=["Keyword Research"])
