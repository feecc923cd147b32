"""
Database configuration and session management.

This module sets up the SQLAlchemy engine and session factory for the
credential store (users and roles).
"""

import logging
from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()
DATABASE_URL = settings.database_url


def _engine_options(url: str) -> dict[str, Any]:
    """Pool options for the configured backend."""
    if url.startswith("sqlite"):
        # Requests are served from a worker thread pool
        return {"connect_args": {"check_same_thread": False}}
    # - pool_pre_ping: Verify connections are alive before using them
    # - pool_size: Number of connections to keep in pool
    # - max_overflow: Number of connections to allow beyond pool_size
    return {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 10}


# Create SQLAlchemy engine
engine = create_engine(
    DATABASE_URL,
    echo=settings.sql_debug,
    **_engine_options(DATABASE_URL),
)

# Create session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

# Base class for declarative models
Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """
    Dependency that provides a database session.

    Usage in FastAPI:
        @router.get("/items")
        def get_items(db: Session = Depends(get_db)):
            ...

    Yields:
        Session: SQLAlchemy database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """
    Initialize the database by creating all tables.

    Note: In production, use Alembic migrations instead.
    """
    # Import models to ensure they are registered with Base
    from . import models_db  # noqa: F401

    Base.metadata.create_all(bind=engine)


def seed_roles() -> None:
    """Create the fixed role set and the optional bootstrap admin."""
    from .services.user_service import UserService

    db = SessionLocal()
    try:
        service = UserService(db)
        service.ensure_roles()
        if settings.seed_admin_email and settings.seed_admin_password:
            service.ensure_admin(
                settings.seed_admin_email,
                settings.seed_admin_password,
            )
    finally:
        db.close()
