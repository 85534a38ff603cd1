"""
Monitoring Package.

============================================================
PURPOSE
============================================================
Reachability checks for the notifier's external systems.

PRINCIPLES:
1. READ-ONLY - checks never mutate state
2. EXPLICIT - a failing check reports why
3. Silence is a failure

============================================================
"""

from .health_checks import (
    HealthState,
    ComponentHealth,
    SystemHealth,
    HealthChecker,
)


__all__ = [
    "HealthState",
    "ComponentHealth",
    "SystemHealth",
    "HealthChecker",
]
