"""Database engine helpers for the SQL search backend."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy import event
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.engine import URL
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import DatabaseSettings
from app.core.config import Settings

logger = logging.getLogger(__name__)

POOL_ACQUIRE_TIMEOUT_SECONDS = 30


def database_url(database: DatabaseSettings) -> str | URL:
    """Return the override URL when configured, otherwise a psycopg PostgreSQL URL."""
    if database.url_override:
        url = database.url_override
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+psycopg://", 1)
        return url
    return URL.create(
        "postgresql+psycopg",
        username=database.user,
        password=database.password,
        host=database.host,
        port=database.port,
        database=database.name,
    )


def _log_statement(conn: Any, cursor: Any, statement: str, parameters: Any, context: Any, executemany: bool) -> None:
    logger.debug("SQL: %s", statement)


def build_engine(settings: Settings) -> Engine:
    """Create the SQLAlchemy engine with pooling sized from settings.

    Connecting is deferred until first use.
    """
    database = settings.database
    url = database_url(database)
    options: dict[str, Any] = {"pool_pre_ping": True}

    if not str(url).startswith("sqlite"):
        options.update(
            pool_size=database.pool_min,
            max_overflow=max(0, database.pool_max - database.pool_min),
            pool_timeout=POOL_ACQUIRE_TIMEOUT_SECONDS,
            connect_args={"options": "-c timezone=utc"},
        )

    engine = create_engine(url, **options)
    if settings.performance.enable_query_logging:
        event.listen(engine, "before_cursor_execute", _log_statement)
    return engine


def verify_connection(engine: Engine) -> bool:
    """Verify the database answers a trivial query; re-raises on failure."""
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("Unable to connect to the database: %s", exc)
        raise
    logger.info("Database connection established successfully")
    return True


def check_database(engine: Engine) -> bool:
    """Return whether the database is reachable without raising."""
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("Database health check failed", exc_info=True)
        return False
    return True


def close_connection(engine: Engine) -> None:
    """Release every pooled connection."""
    engine.dispose()
    logger.info("Database connection pool closed")
