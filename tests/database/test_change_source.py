"""
Tests for the database layer.

============================================================
PURPOSE
============================================================
- Cursor initialization (including the fail-open fallback)
- Cursor monotonicity and no duplicate delivery
- Cursor untouched on poll failure
- Row conversion and repository error wrapping
- Engine URL and TLS arguments

============================================================
"""

import ssl
from decimal import Decimal
from typing import Dict, List
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from core.exceptions import DatabaseError
from database.change_source import ChangeSource
from database.engine import build_connect_args, build_database_url
from database.models import TokenEventRecord
from database.repository import TokenEventRepository
from database.settings import DatabaseSettings
from orchestrator.models import DatabaseSettings as ConfigDatabaseSettings


# ============================================================
# FIXTURES
# ============================================================

class InMemoryEventStore:
    """Event table held in memory, keyed by vid."""

    def __init__(self, vids: List[int], record_factory):
        self._factory = record_factory
        self.rows: Dict[int, TokenEventRecord] = {}
        self.fail_next = False
        self.insert(*vids)

    def insert(self, *vids: int) -> None:
        for vid in vids:
            self.rows[vid] = self._factory(vid=vid, id=f"evt-{vid}")

    async def fetch_max_cursor(self) -> int:
        return max(self.rows, default=0)

    async def fetch_newer_than(self, cursor: int) -> List[TokenEventRecord]:
        if self.fail_next:
            self.fail_next = False
            raise DatabaseError("connection reset", operation="fetch_newer_than")
        return [self.rows[v] for v in sorted(self.rows) if v > cursor]


@pytest.fixture
def store(record_factory):
    return InMemoryEventStore(list(range(1, 101)), record_factory)


@pytest.fixture
def change_source(store):
    return ChangeSource(store)


# ============================================================
# CHANGE SOURCE
# ============================================================

class TestChangeSourceInitialize:
    """Tests for cursor initialization."""

    @pytest.mark.asyncio
    async def test_initializes_to_current_max(self, change_source):
        cursor = await change_source.initialize()

        assert cursor == 100
        assert change_source.last_cursor == 100
        assert change_source.is_initialized

    @pytest.mark.asyncio
    async def test_empty_table_initializes_to_zero(self, record_factory):
        source = ChangeSource(InMemoryEventStore([], record_factory))

        assert await source.initialize() == 0

    @pytest.mark.asyncio
    async def test_query_failure_falls_back_to_zero(self):
        store = MagicMock()
        store.fetch_max_cursor = AsyncMock(side_effect=DatabaseError("down"))
        source = ChangeSource(store, initial_cursor=42)

        assert await source.initialize() == 0
        assert source.last_cursor == 0
        assert source.is_initialized


class TestChangeSourcePoll:
    """Tests for incremental polling."""

    @pytest.mark.asyncio
    async def test_returns_new_rows_in_order_and_advances(self, change_source, store):
        await change_source.initialize()
        store.insert(105, 101, 102)

        records = await change_source.poll()

        assert [r.vid for r in records] == [101, 102, 105]
        assert change_source.last_cursor == 105

    @pytest.mark.asyncio
    async def test_empty_poll_keeps_cursor(self, change_source, store):
        await change_source.initialize()
        store.insert(101, 102, 105)
        await change_source.poll()

        assert await change_source.poll() == []
        assert change_source.last_cursor == 105

    @pytest.mark.asyncio
    async def test_no_record_returned_twice(self, change_source, store):
        await change_source.initialize()
        seen = []

        for batch in ((101,), (102, 103), (), (104,)):
            store.insert(*batch)
            seen.extend(r.vid for r in await change_source.poll())

        assert seen == [101, 102, 103, 104]
        assert len(seen) == len(set(seen))

    @pytest.mark.asyncio
    async def test_failure_does_not_advance_cursor(self, change_source, store):
        await change_source.initialize()
        store.insert(101)
        store.fail_next = True

        with pytest.raises(DatabaseError):
            await change_source.poll()
        assert change_source.last_cursor == 100

        records = await change_source.poll()
        assert [r.vid for r in records] == [101]

    @pytest.mark.asyncio
    async def test_unexpected_error_is_wrapped(self):
        store = MagicMock()
        store.fetch_newer_than = AsyncMock(side_effect=RuntimeError("boom"))
        source = ChangeSource(store, initial_cursor=7)

        with pytest.raises(DatabaseError) as exc_info:
            await source.poll()

        assert exc_info.value.context["cursor"] == 7
        assert source.last_cursor == 7

    @pytest.mark.asyncio
    async def test_unsorted_store_results_are_sorted(self, record_factory):
        store = MagicMock()
        store.fetch_newer_than = AsyncMock(return_value=[
            record_factory(vid=9), record_factory(vid=3), record_factory(vid=5),
        ])
        source = ChangeSource(store)

        records = await source.poll()

        assert [r.vid for r in records] == [3, 5, 9]
        assert source.last_cursor == 9


# ============================================================
# RECORD MODEL
# ============================================================

class TestTokenEventRecord:
    """Tests for row conversion."""

    def test_numeric_columns_are_normalised(self, record_factory):
        record = record_factory(vid="123", status=Decimal("2"), supply=Decimal("1000.5"))

        assert record.vid == 123
        assert record.status == 2
        assert record.supply == 1000.5
        assert isinstance(record.block_height, float)

    def test_blank_optional_text_is_absent(self, record_factory):
        record = record_factory(token_name="  ", token_symbol="", token_uri=None)

        assert record.token_name is None
        assert record.token_symbol is None
        assert record.token_uri is None

    def test_unknown_columns_are_ignored(self, record_factory):
        record = record_factory(block_range="[1,)")

        assert "block_range" not in record.to_dict()

    def test_record_is_immutable(self, record_factory):
        record = record_factory()

        with pytest.raises(AttributeError):
            record.vid = 5

    def test_display_label_prefers_name(self, record_factory):
        assert record_factory(token_name="Foo").display_label == "Foo"
        assert record_factory(token_symbol="FOO").display_label == "FOO"
        assert record_factory().display_label == "MintPubkey111"


# ============================================================
# REPOSITORY
# ============================================================

def _fake_engine(result=None, error=None):
    """AsyncEngine stand-in whose connect() yields one connection."""
    conn = MagicMock()
    if error is not None:
        conn.execute = AsyncMock(side_effect=error)
    else:
        conn.execute = AsyncMock(return_value=result)

    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=conn)
    context.__aexit__ = AsyncMock(return_value=False)

    engine = MagicMock()
    engine.connect = MagicMock(return_value=context)
    return engine, conn


class TestTokenEventRepository:
    """Tests for SQL access."""

    def test_rejects_unsafe_table_name(self):
        with pytest.raises(ValueError):
            TokenEventRepository(MagicMock(), table="events; DROP TABLE x")

    def test_accepts_schema_qualified_table(self):
        repo = TokenEventRepository(MagicMock(), table="public.initialize_token_event_entity")

        assert repo.table == "public.initialize_token_event_entity"

    @pytest.mark.asyncio
    async def test_fetch_max_cursor(self):
        result = MagicMock()
        result.scalar.return_value = Decimal("100")
        engine, conn = _fake_engine(result=result)

        assert await TokenEventRepository(engine).fetch_max_cursor() == 100
        sql = str(conn.execute.call_args.args[0])
        assert "COALESCE(MAX(vid), 0)" in sql

    @pytest.mark.asyncio
    async def test_fetch_newer_than_builds_records(self, base_row):
        result = MagicMock()
        result.mappings.return_value.all.return_value = [
            dict(base_row, vid=101), dict(base_row, vid=102),
        ]
        engine, conn = _fake_engine(result=result)

        records = await TokenEventRepository(engine).fetch_newer_than(100)

        assert [r.vid for r in records] == [101, 102]
        assert conn.execute.call_args.args[1] == {"cursor": 100}
        assert "ORDER BY vid ASC" in str(conn.execute.call_args.args[0])

    @pytest.mark.asyncio
    async def test_driver_errors_become_database_errors(self):
        engine, _ = _fake_engine(error=OperationalError("SELECT", {}, Exception("refused")))

        with pytest.raises(DatabaseError) as exc_info:
            await TokenEventRepository(engine).fetch_newer_than(5)

        assert exc_info.value.context["operation"] == "fetch_newer_than"
        assert exc_info.value.context["cursor"] == 5


# ============================================================
# ENGINE SETTINGS
# ============================================================

class TestEngineSettings:
    """Tests for URL and driver arguments built from DatabaseSettings."""

    def test_url_from_database_settings(self):
        settings = DatabaseSettings(
            host="db.internal", port=6543, user="reader", password="p@ss", database="indexer",
        )

        url = build_database_url(settings)

        assert url.drivername == "postgresql+asyncpg"
        assert url.host == "db.internal"
        assert url.port == 6543
        assert url.password == "p@ss"
        assert url.database == "indexer"

    def test_tls_without_verification(self):
        settings = DatabaseSettings(
            host="db", port=5432, user="u", password="p", database="d", ssl=True,
        )

        context = build_connect_args(settings)["ssl"]

        assert context.check_hostname is False
        assert context.verify_mode == ssl.CERT_NONE

    def test_plain_connection_has_no_ssl(self):
        settings = DatabaseSettings(host="db", port=5432, user="u", password="p", database="d")

        assert "ssl" not in build_connect_args(settings)

    def test_config_uses_database_layer_settings(self):
        assert ConfigDatabaseSettings is DatabaseSettings
