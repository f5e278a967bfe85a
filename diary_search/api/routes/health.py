"""
Health check and session routes for the application.

This module provides endpoints for monitoring the application's health and for
the session lifecycle: refreshing caches and signing out.
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends, status

from ..dependencies import get_diary_session
from ..models import CacheStatsResponse
from ...core.config import settings
from ...services.session_service import DiarySession

router = APIRouter(prefix="/api")


@router.get("/health")
async def health_check(session: DiarySession = Depends(get_diary_session)) -> Dict[str, Any]:
    """
    Health check endpoint that verifies the application's status.

    Args:
        session: Diary session dependency

    Returns:
        Dict[str, Any]: Health status information including cache state
    """
    return {
        "status": "ok",
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT.value,
        "record_store": settings.RECORD_STORE_BACKEND.value,
        "session_started": session.started,
        "caches": {cache.name: cache.health_check() for cache in session.hub.caches},
    }


@router.get("/cache/stats", response_model=CacheStatsResponse)
async def cache_stats(session: DiarySession = Depends(get_diary_session)) -> CacheStatsResponse:
    """Return size and hit counters of every cache."""
    return CacheStatsResponse(caches=session.cache_stats())


@router.post("/cache/refresh", status_code=status.HTTP_204_NO_CONTENT)
async def refresh_cache(session: DiarySession = Depends(get_diary_session)) -> None:
    """Drop every cached result so the next reads go to the store."""
    session.refresh()


@router.post("/session/sign-out", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(session: DiarySession = Depends(get_diary_session)) -> None:
    """End the session and clear all cached data."""
    session.sign_out()
