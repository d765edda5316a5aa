"""
Database configuration for local backup storage.

Provides the SQLAlchemy declarative base, engine and session factory helpers.
"""
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from tabledesk.config import get_settings

# Create declarative base for models
Base = declarative_base()


def create_backup_engine(database_url: Optional[str] = None) -> Engine:
    """
    Create the engine backing the local backup store.

    SQLite doesn't support pool_size/max_overflow, so it gets a plain engine.
    """
    url = database_url or get_settings().backup_database_url
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


def create_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory bound to ``engine``."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Initialize database tables."""
    # Import models to ensure they're registered with Base
    from tabledesk.models import backup  # noqa: F401

    Base.metadata.create_all(bind=engine)
