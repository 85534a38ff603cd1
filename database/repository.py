"""
Database Layer - Token Event Repository.

============================================================
PURPOSE
============================================================
Read-only queries against the token initialization event table.

RESPONSIBILITIES:
- Fetch the current maximum cursor
- Fetch all rows newer than a cursor, ascending

No extra filtering: the change source expects the full
contiguous suffix of unseen rows.

============================================================
"""

import logging
import re
from typing import List

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from core.constants import CURSOR_COLUMN, DEFAULT_EVENTS_TABLE
from core.exceptions import DatabaseError

from .models import TokenEventRecord


logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


# ============================================================
# TOKEN EVENT REPOSITORY
# ============================================================

class TokenEventRepository:
    """
    Repository for token initialization events.
    """

    def __init__(self, engine: AsyncEngine, table: str = DEFAULT_EVENTS_TABLE):
        """
        Initialize repository.

        Args:
            engine: SQLAlchemy async engine
            table: Events table name (plain or schema-qualified identifier)
        """
        if not _IDENTIFIER.match(table):
            raise ValueError(f"Invalid table name: {table!r}")

        self._engine = engine
        self._table = table

        self._max_cursor_sql = text(
            f"SELECT COALESCE(MAX({CURSOR_COLUMN}), 0) AS max_vid FROM {table}"
        )
        self._newer_than_sql = text(
            f"SELECT * FROM {table} "
            f"WHERE {CURSOR_COLUMN} > :cursor "
            f"ORDER BY {CURSOR_COLUMN} ASC"
        )

    @property
    def table(self) -> str:
        return self._table

    async def fetch_max_cursor(self) -> int:
        """Return the highest cursor currently stored (0 for an empty table)."""
        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(self._max_cursor_sql)
                value = result.scalar()
        except (SQLAlchemyError, OSError) as e:
            raise DatabaseError(
                f"Failed to read max cursor: {e}",
                operation="fetch_max_cursor",
                table=self._table,
                cause=e,
            ) from e

        return int(value or 0)

    async def fetch_newer_than(self, cursor: int) -> List[TokenEventRecord]:
        """Return every row with cursor > `cursor`, ordered ascending."""
        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(self._newer_than_sql, {"cursor": cursor})
                rows = result.mappings().all()
        except (SQLAlchemyError, OSError) as e:
            raise DatabaseError(
                f"Failed to fetch new rows: {e}",
                operation="fetch_newer_than",
                table=self._table,
                context={"cursor": cursor},
                cause=e,
            ) from e

        records = [TokenEventRecord.from_row(row) for row in rows]
        logger.debug(f"Fetched {len(records)} rows newer than {cursor} from {self._table}")
        return records


__all__ = ["TokenEventRepository"]
