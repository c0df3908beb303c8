"""
SQL client - canonical SQLAlchemy engine and session.

Provides:
- Singleton engine backed by DATABASE_URL (SQLite file by default)
- Session factory
- Table creation for the ORM models in ``models.py``
"""

from loguru import logger
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from typing import Optional

from infrastructure.config import DATABASE_URL
from infrastructure.db.models import Base

# Singleton engine
_engine: Optional[object] = None
_SessionLocal: Optional[object] = None


def get_sql_engine(db_url: Optional[str] = None):
    """
    Get the SQLAlchemy engine.

    Args:
        db_url: Override for DATABASE_URL. Only honoured on first call
                (or after ``reset_engine()``).

    Returns:
        SQLAlchemy engine
    """
    global _engine
    if _engine is None:
        url = db_url or DATABASE_URL

        if url.startswith("sqlite"):
            # Stores run their blocking calls in worker threads.
            _engine = create_engine(
                url,
                connect_args={"check_same_thread": False},
                echo=False,
            )
        else:
            _engine = create_engine(
                url,
                pool_size=5,
                max_overflow=10,
                pool_pre_ping=True,
                pool_recycle=3600,
                echo=False,  # Set to True for SQL debugging
            )
        logger.info("SQL engine created ({})", url.split("://", 1)[0])
    return _engine


def get_session():
    """
    Get a new SQLAlchemy session.

    Returns:
        SQLAlchemy session
    """
    global _SessionLocal
    if _SessionLocal is None:
        engine = get_sql_engine()
        _SessionLocal = sessionmaker(
            bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    return _SessionLocal()


def reset_engine() -> None:
    """Dispose the singleton engine (tests and scripts switching databases)."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


def create_tables():
    """Create database tables if they don't exist."""
    engine = get_sql_engine()
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified")


def test_connection():
    """
    Test the database connection.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        engine = get_sql_engine()
        with engine.connect() as conn:
            result = conn.execute(text("SELECT 1"))
            assert result.scalar() == 1
        logger.info("Database connection test: SUCCESS")
        return True
    except Exception as e:
        logger.error("Database connection test: FAILED - {}", e)
        return False
