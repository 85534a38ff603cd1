"""
Tests for health checks.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.exceptions import CommunicationError
from monitoring.health_checks import HealthChecker, HealthState


class FakeClock:
    def __init__(self):
        self.now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    notifier = MagicMock()
    notifier.get_me = AsyncMock(return_value={"username": "token_bot"})
    return notifier


class TestHealthChecker:
    """Tests for HealthChecker."""

    @pytest.mark.asyncio
    async def test_all_healthy(self, notifier, clock):
        checker = HealthChecker(notifier=notifier, clock=clock)
        checker.register_check("database", AsyncMock(return_value=True))

        health = await checker.perform_health_check()

        assert health.overall_state == HealthState.HEALTHY
        assert [c.name for c in health.components] == ["telegram", "database"]
        assert checker.last_healthy_at == clock.now

    @pytest.mark.asyncio
    async def test_failing_component_makes_system_unhealthy(self, notifier, clock):
        notifier.get_me.side_effect = CommunicationError("Unauthorized", service="telegram")
        checker = HealthChecker(notifier=notifier, clock=clock)

        telegram = await checker.check_telegram()
        health = await checker.perform_health_check()

        assert telegram.state == HealthState.UNHEALTHY
        assert telegram.message == "Unauthorized"
        assert not health.is_healthy
        assert checker.last_healthy_at is None

    @pytest.mark.asyncio
    async def test_unregistered_component_is_unknown(self, clock):
        checker = HealthChecker(clock=clock)

        database = await checker.check_database()

        assert database.state == HealthState.UNKNOWN
        assert not database.is_healthy

    @pytest.mark.asyncio
    async def test_database_check_uses_engine(self, clock):
        conn = MagicMock()
        conn.execute = AsyncMock(return_value=MagicMock())
        context = MagicMock()
        context.__aenter__ = AsyncMock(return_value=conn)
        context.__aexit__ = AsyncMock(return_value=False)
        engine = MagicMock()
        engine.connect = MagicMock(return_value=context)

        checker = HealthChecker(engine=engine, clock=clock)

        assert (await checker.check_database()).is_healthy
        assert str(conn.execute.call_args.args[0]) == "SELECT 1"

    @pytest.mark.asyncio
    async def test_staleness(self, notifier, clock):
        checker = HealthChecker(notifier=notifier, clock=clock)
        assert checker.is_stale(timedelta(minutes=5))

        await checker.perform_health_check()
        clock.advance(60)
        assert not checker.is_stale(timedelta(minutes=5))

        clock.advance(600)
        assert checker.is_stale(timedelta(minutes=5))

    @pytest.mark.asyncio
    async def test_no_checks_is_unhealthy(self, clock):
        health = await HealthChecker(clock=clock).perform_health_check()

        assert health.overall_state == HealthState.UNHEALTHY
