"""
Configuration module for the diary search service.

This module defines application settings and environment-specific configurations
using Pydantic for validation and type checking.
"""
import os
import logging
from enum import Enum
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvironmentType(str, Enum):
    """
    Environment types for the application.

    Enum for different deployment environments.
    """
    LOCAL = "local"
    DEVELOPMENT = "development"
    TEST = "test"
    PRODUCTION = "production"


class RecordStoreBackend(str, Enum):
    """
    Backing record store implementations selectable through configuration.
    """
    SQL = "sql"
    MEMORY = "memory"
    HTTP = "http"


class Settings(BaseSettings):
    """
    Application settings.

    This class defines all configuration settings for the application,
    loaded from environment variables.
    """
    # Environment Configuration
    ENVIRONMENT: EnvironmentType = EnvironmentType.DEVELOPMENT

    # API Configuration
    PROJECT_NAME: str = "Diary Query Cache and Search Service"
    VERSION: str = "1.0.0"
    DEBUG: bool = True

    # Record store Configuration
    RECORD_STORE_BACKEND: RecordStoreBackend = RecordStoreBackend.SQL
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./diary_entries.db")
    RECORD_STORE_URL: Optional[str] = None
    RECORD_STORE_TIMEOUT: float = 15.0  # seconds
    RECORD_STORE_MAX_RETRIES: int = 1

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def assemble_db_connection(cls, v: Optional[str]) -> Optional[str]:
        if isinstance(v, str) and v.startswith("postgres://"):
            # Older hosted Postgres URLs use a scheme SQLAlchemy rejects
            return v.replace("postgres://", "postgresql://", 1)
        return v

    # Cache Configuration
    LIST_CACHE_TTL: float = 600.0  # 10 minutes, list and calendar views
    SEARCH_CACHE_TTL: float = 900.0  # 15 minutes, search results and suggestions

    # Listing Configuration
    PAGE_SIZE: int = 15
    RECENT_TAGS_WINDOW: int = 100
    RECENT_TAGS_LIMIT: int = 10

    # Search Configuration
    SEARCH_LIMIT: int = 50
    SEARCH_WINDOW_FACTOR: int = 2
    SUGGESTION_WINDOW: int = 100
    MAX_SUGGESTIONS: int = 10
    MIN_SUGGESTION_LENGTH: int = 2

    # Rate Control
    SEARCH_DEBOUNCE_MS: int = 300
    SEARCH_THROTTLE_MS: int = 300
    RATE_LIMIT: str = "120/minute"

    # Logging Configuration
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="allow"  # Allow extra fields in environment variables
    )


# Create settings instance
settings = Settings()

# Update DEBUG based on environment if not explicitly set
if os.getenv("DEBUG") is None:
    settings.DEBUG = settings.ENVIRONMENT in [EnvironmentType.LOCAL, EnvironmentType.DEVELOPMENT]

# Set log level in Python's logging module
log_level_map = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Get logger for this module
logger = logging.getLogger(__name__)
logger.setLevel(log_level_map.get(settings.LOG_LEVEL, logging.INFO))
