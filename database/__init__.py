"""
Database Package Initialization.

============================================================
READ-ONLY ACCESS TO THE TOKEN EVENT TABLE
============================================================

This package reads newly inserted token initialization events
from PostgreSQL. It never writes, updates or deletes rows.

- settings: connection settings
- engine: async engine lifecycle (create / verify / dispose)
- models: immutable event record
- repository: SQL queries
- change_source: monotonic cursor and incremental polling

============================================================
"""

from .settings import DatabaseSettings
from .engine import (
    build_database_url,
    create_database_engine,
    dispose_engine,
    verify_database_connection,
)
from .models import TokenEventRecord
from .repository import TokenEventRepository
from .change_source import ChangeSource, EventStore


__all__ = [
    "DatabaseSettings",
    "build_database_url",
    "create_database_engine",
    "dispose_engine",
    "verify_database_connection",
    "TokenEventRecord",
    "TokenEventRepository",
    "ChangeSource",
    "EventStore",
]
