"""
Database Layer - Core Engine.

============================================================
PURPOSE
============================================================
Creates and owns the SQLAlchemy async engine (asyncpg driver)
used to read token events from PostgreSQL.

Requirements:
- Connection pooling with bounded size
- Explicit connectivity verification at startup
- Pool disposal on shutdown

============================================================
"""

import logging
import ssl
from typing import Any, Dict, Optional

from sqlalchemy import text
from sqlalchemy.engine import URL
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from core.exceptions import DatabaseError

from .settings import DatabaseSettings


logger = logging.getLogger(__name__)


# =============================================================
# URL / CONNECT ARGS
# =============================================================


def build_database_url(settings: DatabaseSettings) -> URL:
    """Build the asyncpg connection URL from settings."""
    return URL.create(
        drivername="postgresql+asyncpg",
        username=settings.user,
        password=settings.password,
        host=settings.host,
        port=settings.port,
        database=settings.database,
    )


def build_connect_args(settings: DatabaseSettings) -> Dict[str, Any]:
    """
    Driver-level connection arguments.

    TLS is enabled without certificate verification, matching
    managed PostgreSQL providers that use self-signed chains.
    """
    connect_args: Dict[str, Any] = {"timeout": settings.connect_timeout_seconds}

    if settings.ssl:
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        connect_args["ssl"] = context

    return connect_args


# =============================================================
# DATABASE ENGINE
# =============================================================


def create_database_engine(
    settings: DatabaseSettings,
    echo: bool = False,
) -> AsyncEngine:
    """
    Create SQLAlchemy async engine with connection pooling.

    Args:
        settings: Database settings
        echo: Log SQL statements

    Returns:
        SQLAlchemy AsyncEngine
    """
    logger.info(
        f"Creating database engine for: {settings.host}:{settings.port}/{settings.database} "
        f"(ssl={settings.ssl})"
    )

    return create_async_engine(
        build_database_url(settings),
        pool_size=settings.pool_size,
        max_overflow=0,
        pool_recycle=settings.pool_recycle_seconds,
        pool_pre_ping=True,
        connect_args=build_connect_args(settings),
        echo=echo,
    )


async def verify_database_connection(engine: AsyncEngine) -> bool:
    """
    Verify database connection is working.

    Returns:
        True if connection successful

    Raises:
        DatabaseError if connection fails
    """
    try:
        async with engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            result.scalar()
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Database connection failed: {e}")
        raise DatabaseError(
            f"Cannot connect to database: {e}",
            operation="verify_connection",
            cause=e,
        ) from e

    logger.info("Database connection verified successfully")
    return True


async def dispose_engine(engine: Optional[AsyncEngine]) -> None:
    """Release all pooled connections."""
    if engine is None:
        return
    await engine.dispose()
    logger.info("Disconnected from PostgreSQL database")


__all__ = [
    "build_database_url",
    "build_connect_args",
    "create_database_engine",
    "verify_database_connection",
    "dispose_engine",
]
