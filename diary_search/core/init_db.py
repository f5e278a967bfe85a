"""Database initialization script."""

import logging

from sqlalchemy.engine import Engine

from diary_search.core.database import Base
from diary_search.models.record import DiaryRecord  # noqa: F401  registers the table

logger = logging.getLogger(__name__)


def init_db(engine: Engine) -> None:
    """Initialize the database by creating all tables."""
    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully.")
