"""
Storage gateway: engine and session factory construction.

PostgreSQL is the production store; SQLite is accepted for local runs and
tests, with foreign keys switched on so cascades behave the same way.
"""

import logging

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from .config import Config
from .models import Base

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str = None, config_class=Config) -> Engine:
    """Create the engine for *database_url* (defaults to the configured URL)."""
    url = database_url or config_class.DATABASE_URL

    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every checkout sees an empty database
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, **kwargs)
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    return create_engine(
        url,
        pool_size=config_class.DB_POOL_SIZE,
        max_overflow=config_class.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    # Returned records stay readable after commit, once the request's session is gone
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def create_tables(engine: Engine):
    """Create all tables and indexes if they don't already exist."""
    Base.metadata.create_all(bind=engine)
    logger.info("✓ Database tables ensured")


def check_connection(engine: Engine) -> bool:
    """Return True when a trivial query succeeds against *engine*."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as exc:
        logger.error("✗ Database connection failed: %s", exc)
        return False
