"""
Database session management for the diary search service.

This module creates the SQLAlchemy engine and session factory used by the
SQL-backed record store.
"""
import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

logger = logging.getLogger(__name__)

Base = declarative_base()


def create_db_engine(database_url: str) -> Engine:
    """
    Create a SQLAlchemy engine for the given URL.

    SQLite connections are shared across threads because FastAPI may run
    dependencies in a worker thread.

    Args:
        database_url: SQLAlchemy database URL

    Returns:
        Engine: Configured engine
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    logger.info(f"Creating database engine for {database_url.split('://', 1)[0]}")
    return create_engine(database_url, connect_args=connect_args)


def create_session_factory(engine: Engine) -> sessionmaker:
    """
    Create the session factory bound to ``engine``.

    Args:
        engine: Engine to bind sessions to

    Returns:
        sessionmaker: Factory producing new sessions
    """
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
