"""
Main application module for the diary search service.

This module configures and starts the FastAPI application, including middleware,
exception handlers, and route registration.
"""
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .api.dependencies import limiter
from .api.models import ErrorResponse
from .api.routes.entry_routes import router as entry_router
from .api.routes.health import router as health_router
from .api.routes.search_routes import router as search_router
from .core.config import settings
from .services.http_record_store import HttpRecordStore
from .services.record_store import (
    FetchFailure,
    MutationFailure,
    OwnershipError,
    RecordNotFoundError,
)
from .services.session_service import DiarySession, create_record_store

# Load environment variables from the project root .env
project_dir = Path(__file__).parent.parent
env_path = project_dir / '.env'
load_dotenv(dotenv_path=env_path)

# Set up logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format=settings.LOG_FORMAT,
)
logger = logging.getLogger(__name__)


def _error(status_code: int, message: str, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            status_code=status_code,
            message=message,
            details=str(exc) if settings.DEBUG else None,
        ).model_dump(),
    )


def create_app(session: Optional[DiarySession] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        session: Diary session to serve (optional); built from settings if omitted

    Returns:
        FastAPI: Configured application
    """
    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Cached listings and search over diary entries",
        version=settings.VERSION,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        debug=False,
    )

    app.state.diary = session or DiarySession(create_record_store(settings))

    # Add rate limiter to app state
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://localhost:8000",
            os.environ.get("FRONTEND_URL", "http://localhost:3000"),
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RecordNotFoundError)
    async def not_found_handler(request: Request, exc: RecordNotFoundError) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, "Entry not found", exc)

    @app.exception_handler(OwnershipError)
    async def ownership_handler(request: Request, exc: OwnershipError) -> JSONResponse:
        logger.warning(f"Ownership check failed for {request.url.path}: {exc}")
        return _error(status.HTTP_403_FORBIDDEN, "Entry belongs to another owner", exc)

    @app.exception_handler(FetchFailure)
    async def fetch_failure_handler(request: Request, exc: FetchFailure) -> JSONResponse:
        logger.error(f"Record store read failed for {request.url.path}: {exc}")
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "Record store is unavailable", exc)

    @app.exception_handler(MutationFailure)
    async def mutation_failure_handler(request: Request, exc: MutationFailure) -> JSONResponse:
        logger.error(f"Record store write failed for {request.url.path}: {exc}")
        return _error(status.HTTP_502_BAD_GATEWAY, "Record store rejected the change", exc)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler for all unhandled exceptions.

        Args:
            request: The request that caused the exception
            exc: The exception that was raised

        Returns:
            JSONResponse: A JSON response with error details
        """
        logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "An unexpected error occurred", exc)

    @app.get("/", include_in_schema=False)
    async def root() -> Dict[str, Any]:
        """
        Root endpoint that provides basic API information.

        Returns:
            Dict[str, Any]: API information
        """
        return {
            "message": f"Welcome to {settings.PROJECT_NAME}",
            "docs_url": "/api/docs",
            "health_check": "/api/health",
        }

    # Register routes
    app.include_router(entry_router)
    app.include_router(search_router)
    app.include_router(health_router)

    @app.on_event("startup")
    async def startup_event() -> None:
        """
        Execute startup tasks for the application.

        Starts the diary session with empty caches.
        """
        logger.info(f"Starting {settings.PROJECT_NAME} v{settings.VERSION}")
        logger.info(f"Environment: {settings.ENVIRONMENT.value}")
        logger.info(f"Debug mode: {settings.DEBUG}")
        app.state.diary.start()

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        """
        Execute shutdown tasks for the application.

        Ends the session and closes the record store client.
        """
        logger.info(f"Shutting down {settings.PROJECT_NAME}")
        app.state.diary.sign_out()
        if isinstance(app.state.diary.store, HttpRecordStore):
            await app.state.diary.store.aclose()

    return app


app = create_app()
