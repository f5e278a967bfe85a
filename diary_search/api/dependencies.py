"""
Dependencies for FastAPI application.

This module provides dependency functions for the FastAPI application,
including access to the diary session and the shared rate limiter.
"""
from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from ..services.session_service import DiarySession

# Shared rate limiter, attached to the app state in main
limiter = Limiter(key_func=get_remote_address)


def get_diary_session(request: Request) -> DiarySession:
    """
    Return the diary session attached to the application.

    Args:
        request: The FastAPI request object

    Returns:
        DiarySession: The application's session
    """
    return request.app.state.diary
