# backend/app/database.py
"""
Database connection and session management.

SQLAlchemy engine setup per backend:
- In-memory SQLite (tests): StaticPool so every session shares one connection
- File SQLite (local development): default pool, cross-thread access allowed
- PostgreSQL / other servers: QueuePool sized from DB_POOL_* settings
"""

import logging
from collections.abc import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool, QueuePool

from .config import settings

logger = logging.getLogger(__name__)


def _create_engine() -> Engine:
    """Create the SQLAlchemy engine for the configured DATABASE_URL."""
    url = settings.database_url

    if settings.is_sqlite:
        connect_args = {"check_same_thread": False}
        if ":memory:" in url:
            logger.info("Configuring in-memory SQLite database")
            return create_engine(
                url,
                poolclass=StaticPool,
                connect_args=connect_args,
                echo=settings.debug,
            )

        logger.info(f"Configuring SQLite database at {url}")
        return create_engine(url, connect_args=connect_args, echo=settings.debug)

    logger.info(
        f"Configuring database pool: "
        f"size={settings.db_pool_size}, "
        f"max_overflow={settings.db_pool_max_overflow}, "
        f"recycle={settings.db_pool_recycle}s"
    )

    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_pool_max_overflow,
        pool_recycle=settings.db_pool_recycle,
        pool_pre_ping=True,
        pool_timeout=30,
        echo=settings.debug,
    )


engine = _create_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency that provides a database session.

    Usage:
        @router.get("/investments")
        def list_investments(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create all tables that do not exist yet."""
    # Imported for its side effect of registering the mappers
    from app import models  # noqa: F401

    models.Base.metadata.create_all(bind=engine)


def check_database_health() -> dict:
    """
    Check database connectivity.

    Used by /health. Never raises; failures are reported in the payload.
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))

        return {
            "status": "healthy",
            "database": "sqlite" if settings.is_sqlite else engine.dialect.name,
        }
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {
            "status": "unhealthy",
            "error": str(e),
        }
