"""
Search-related API routes for the diary search service.

This module contains route definitions for free-text search over an owner's
recent entries and for type-ahead suggestions.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from ...api.dependencies import get_diary_session, limiter
from ...api.models import SearchResponse, SuggestionsResponse
from ...core.config import settings
from ...services.search_service import SearchStrategy
from ...services.session_service import DiarySession

# Create router
router = APIRouter(
    prefix="/api/owners/{owner_id}/search",
    tags=["search"],
    responses={404: {"description": "Not found"}},
)

# Set up logging
logger = logging.getLogger(__name__)


@router.get("", response_model=SearchResponse)
@limiter.limit(settings.RATE_LIMIT)
async def search_entries(
    request: Request,
    owner_id: str,
    q: str = Query(default=""),
    rating: Optional[int] = Query(default=None, ge=1, le=5),
    strategy: SearchStrategy = Query(default=SearchStrategy.SMART),
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    session: DiarySession = Depends(get_diary_session),
) -> SearchResponse:
    """
    Search an owner's entries.

    Args:
        request: The FastAPI request object
        owner_id: Owning user
        q: Free-text query
        rating: Mood rating the results must have (optional)
        strategy: Matching strategy
        limit: Maximum number of results (optional)
        session: Diary session

    Returns:
        SearchResponse: Matching entries, newest first
    """
    logger.info(f"Search request received for owner {owner_id}: q='{q}', rating={rating}, strategy={strategy.value}")
    results = await session.search_engine.search(
        owner_id, q, category=rating, strategy=strategy, limit=limit
    )
    return SearchResponse(
        query=q,
        rating=rating,
        strategy=strategy.value,
        results=results,
        total_results=len(results),
    )


@router.get("/suggestions", response_model=SuggestionsResponse)
@limiter.limit(settings.RATE_LIMIT)
async def search_suggestions(
    request: Request,
    owner_id: str,
    q: str = Query(default=""),
    session: DiarySession = Depends(get_diary_session),
) -> SuggestionsResponse:
    """Suggest recent titles and tags containing a partial query."""
    suggestions = await session.search_engine.suggestions(owner_id, q)
    return SuggestionsResponse(query=q, suggestions=suggestions)
