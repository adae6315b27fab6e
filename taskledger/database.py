"""
Database Session Management - Core database connectivity layer
"""

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from typing import Generator
import logging

from taskledger.core.config import settings

logger = logging.getLogger(__name__)


def build_engine(url: str, **overrides) -> Engine:
    """
    Create an engine for `url` with settings appropriate to its backend.

    SQLite gets a thread-shareable connection and enforced foreign keys;
    server databases get a sized connection pool.
    """
    if url.startswith("sqlite"):
        options = {
            "connect_args": {"check_same_thread": False},  # Sessions may move between threads
        }
    else:
        options = {
            "pool_size": settings.DB_POOL_SIZE,  # Number of persistent connections
            "max_overflow": settings.DB_MAX_OVERFLOW,  # Extra connections when pool is exhausted
            "pool_timeout": settings.DB_POOL_TIMEOUT,  # Wait time for available connection
            "pool_pre_ping": True,  # Verify connection health before use
        }
    options["echo"] = settings.DEBUG  # Log SQL in debug mode
    options.update(overrides)
    new_engine = create_engine(url, **options)

    # Log when new database connections are established
    @event.listens_for(new_engine, "connect")
    def receive_connect(dbapi_conn, connection_record):
        if new_engine.dialect.name == "sqlite":
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")  # SQLite ignores FKs unless asked
            cursor.close()
        logger.debug("🔌 New database connection established")

    # Log when connections are closed
    @event.listens_for(new_engine, "close")
    def receive_close(dbapi_conn, connection_record):
        logger.debug("🔌 Database connection closed")

    return new_engine


engine = build_engine(settings.DATABASE_URL)

# Session factory - creates new sessions for each request
SessionLocal = sessionmaker(
    autocommit=False,  # Require explicit commits
    autoflush=False,   # Control when changes are flushed to database
    bind=engine,
)

# Base class for all SQLAlchemy models
Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that provides database session per request.
    Automatically handles session lifecycle and cleanup.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"❌ Database error during request: {str(e)}", exc_info=True)
        db.rollback()  # Prevent partial commits
        raise
    finally:
        db.close()
        logger.debug("✅ Database session closed")


def init_db(bind: Engine = None) -> None:
    """
    Create all tables.
    Used for development setup and tests - production should use migrations.
    """
    logger.info("🏗️  Creating database tables...")
    try:
        from taskledger import models  # noqa: F401  Register models with Base
        Base.metadata.create_all(bind=bind or engine)
        logger.info("✅ Database tables created successfully")
    except Exception as e:
        logger.error(f"❌ Failed to create database tables: {str(e)}", exc_info=True)
        raise


def check_db_connection() -> bool:
    """
    Verify database connectivity - used for health checks and startup validation.
    Returns True if connection successful, False otherwise.
    """
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
        logger.info("✅ Database connection successful")
        return True
    except Exception as e:
        logger.error(f"❌ Database connection failed: {str(e)}", exc_info=True)
        return False


def get_pool_stats() -> dict:
    """
    Current connection pool statistics.
    Pools without sizing (e.g. SQLite's) report only what they expose.
    """
    pool = engine.pool
    stats = {"pool_class": type(pool).__name__}
    for name in ("size", "checkedout", "overflow", "checkedin"):
        reader = getattr(pool, name, None)
        if callable(reader):
            stats[name] = reader()
    return stats


def close_db_connections():
    """Dispose all pooled connections - called during application shutdown"""
    logger.info("🔌 Closing database connections...")
    engine.dispose()
    logger.info("✅ All database connections closed")
