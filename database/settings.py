"""
Database Layer - Connection Settings.
"""

from dataclasses import dataclass

from core.constants import DEFAULT_EVENTS_TABLE


@dataclass(frozen=True)
class DatabaseSettings:
    """PostgreSQL connection settings."""

    host: str
    port: int
    user: str
    password: str
    database: str
    ssl: bool = False
    events_table: str = DEFAULT_EVENTS_TABLE
    pool_size: int = 10
    pool_recycle_seconds: int = 1800
    connect_timeout_seconds: float = 5.0


__all__ = ["DatabaseSettings"]
