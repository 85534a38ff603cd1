"""
Monitoring - Health Checks.

============================================================
RESPONSIBILITY
============================================================
Checks reachability of the external systems the notifier
depends on.

- Database: SELECT 1 through the engine
- Telegram: getMe through the notifier
- Aggregates component results into one system health

============================================================
HEALTH STATES
============================================================
- HEALTHY: check passed
- UNHEALTHY: check failed
- UNKNOWN: never checked

============================================================
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from database.engine import verify_database_connection
from notifications.telegram import TelegramNotifier


logger = logging.getLogger(__name__)


class HealthState(Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass
class ComponentHealth:
    """Health of one checked component."""

    name: str
    state: HealthState
    message: Optional[str] = None
    last_check: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_healthy(self) -> bool:
        return self.state == HealthState.HEALTHY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "message": self.message,
            "last_check": self.last_check.isoformat(),
        }


@dataclass
class SystemHealth:
    """Aggregated health of all components."""

    overall_state: HealthState
    components: List[ComponentHealth]
    last_check: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_healthy(self) -> bool:
        return self.overall_state == HealthState.HEALTHY

    def component(self, name: str) -> Optional[ComponentHealth]:
        for component in self.components:
            if component.name == name:
                return component
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall_state": self.overall_state.value,
            "components": [c.to_dict() for c in self.components],
            "last_check": self.last_check.isoformat(),
        }


CheckFn = Callable[[], Awaitable[Any]]


class HealthChecker:
    """
    Runs registered health checks.

    A check is an async callable: it passes by returning and
    fails by raising.
    """

    def __init__(
        self,
        engine: Optional[AsyncEngine] = None,
        notifier: Optional[TelegramNotifier] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._clock = clock
        self._checks: Dict[str, CheckFn] = {}
        self._last_health: Optional[SystemHealth] = None
        self._last_healthy_at: Optional[datetime] = None

        if engine is not None:
            self.register_check("database", lambda: verify_database_connection(engine))
        if notifier is not None:
            self.register_check("telegram", notifier.get_me)

    @property
    def last_healthy_at(self) -> Optional[datetime]:
        """When every component last passed together."""
        return self._last_healthy_at

    def register_check(self, name: str, check_fn: CheckFn) -> None:
        self._checks[name] = check_fn

    def get_last_health(self) -> Optional[SystemHealth]:
        return self._last_health

    async def check_component(self, name: str) -> ComponentHealth:
        """Run one named check. Never raises for a failing check."""
        check_fn = self._checks.get(name)
        if check_fn is None:
            return ComponentHealth(
                name=name,
                state=HealthState.UNKNOWN,
                message="no check registered",
                last_check=self._clock(),
            )

        try:
            await check_fn()
        except Exception as e:
            logger.error(f"Health check '{name}' failed: {e}")
            return ComponentHealth(
                name=name,
                state=HealthState.UNHEALTHY,
                message=str(e),
                last_check=self._clock(),
            )

        logger.debug(f"Health check '{name}' passed")
        return ComponentHealth(name=name, state=HealthState.HEALTHY, last_check=self._clock())

    async def check_database(self) -> ComponentHealth:
        return await self.check_component("database")

    async def check_telegram(self) -> ComponentHealth:
        return await self.check_component("telegram")

    async def perform_health_check(self) -> SystemHealth:
        """Run every registered check in registration order."""
        components = [await self.check_component(name) for name in self._checks]

        healthy = bool(components) and all(c.is_healthy for c in components)
        now = self._clock()
        health = SystemHealth(
            overall_state=HealthState.HEALTHY if healthy else HealthState.UNHEALTHY,
            components=components,
            last_check=now,
        )

        self._last_health = health
        if healthy:
            self._last_healthy_at = now
        else:
            failing = ", ".join(c.name for c in components if not c.is_healthy) or "none registered"
            logger.warning(f"System unhealthy: {failing}")

        return health

    def is_stale(self, max_age: timedelta) -> bool:
        """True when the last fully healthy check is older than max_age (or never happened)."""
        if self._last_healthy_at is None:
            return True
        return self._clock() - self._last_healthy_at > max_age


__all__ = [
    "HealthState",
    "ComponentHealth",
    "SystemHealth",
    "HealthChecker",
]
