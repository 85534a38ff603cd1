"""
Database Layer - Change Source.

============================================================
PURPOSE
============================================================
Incremental change detection over the token event table.

INVARIANTS:
- The cursor only moves forward
- The cursor only moves after a successful fetch
- Each poll returns the contiguous suffix of unseen rows,
  ascending by cursor, so no row is delivered twice by one
  running process

KNOWN BEHAVIOUR:
- If the startup max-cursor query fails, the cursor falls
  back to 0 and the next poll replays the whole table.
- The cursor is memory-only. After a restart it is
  re-initialised to the current maximum, so rows inserted
  while the process was down are never notified.

============================================================
"""

import logging
from typing import List, Protocol

from core.exceptions import DatabaseError

from .models import TokenEventRecord


logger = logging.getLogger(__name__)


class EventStore(Protocol):
    """Query surface the change source needs from the data store."""

    async def fetch_max_cursor(self) -> int: ...

    async def fetch_newer_than(self, cursor: int) -> List[TokenEventRecord]: ...


class ChangeSource:
    """
    Owns the in-memory cursor and yields newly inserted events.

    Only the poll scheduler's single worker calls `poll()`, so the
    cursor needs no locking.
    """

    def __init__(self, store: EventStore, initial_cursor: int = 0):
        self._store = store
        self._last_cursor = initial_cursor
        self._initialized = False

    @property
    def last_cursor(self) -> int:
        """Highest cursor already handed out."""
        return self._last_cursor

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> int:
        """
        Position the cursor at the store's current maximum.

        Fails open: on query failure the cursor is set to 0, which
        means every existing row is returned by the next poll.
        """
        try:
            self._last_cursor = await self._store.fetch_max_cursor()
            logger.info(f"Initialized last cursor to: {self._last_cursor}")
        except Exception as e:
            logger.error(
                f"Failed to initialize last cursor, falling back to 0 "
                f"(all existing rows will be notified): {e}"
            )
            self._last_cursor = 0

        self._initialized = True
        return self._last_cursor

    async def poll(self) -> List[TokenEventRecord]:
        """
        Return all rows newer than the cursor, ascending.

        Raises:
            DatabaseError: the cursor is left untouched, so the
                same rows are returned by the next successful poll
        """
        try:
            records = await self._store.fetch_newer_than(self._last_cursor)
        except DatabaseError:
            logger.error(f"Error checking for new records after cursor {self._last_cursor}")
            raise
        except Exception as e:
            logger.error(f"Error checking for new records after cursor {self._last_cursor}: {e}")
            raise DatabaseError(
                f"Poll failed: {e}",
                operation="poll",
                context={"cursor": self._last_cursor},
                cause=e,
            ) from e

        if not records:
            return []

        records = sorted(records, key=lambda record: record.vid)
        max_cursor = records[-1].vid

        if max_cursor > self._last_cursor:
            self._last_cursor = max_cursor

        logger.info(
            f"Found {len(records)} new records. Updated last cursor to: {self._last_cursor}"
        )
        return records


__all__ = ["EventStore", "ChangeSource"]
