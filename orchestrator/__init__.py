"""
Orchestrator Package - Process Coordination Layer.

============================================================
PACKAGE OVERVIEW
============================================================
Configuration, logging setup, the poll scheduler, the
application lifecycle and the CLI.

    +-----------------------------------------------------+
    |                 NotifierApplication                 |
    |-----------------------------------------------------|
    |  AppConfig       |  environment configuration      |
    |  HealthChecker   |  startup reachability checks    |
    |  PollScheduler   |  poll / enrich / format / send  |
    |  CLI             |  command-line interface         |
    +-----------------------------------------------------+

Only the models are re-exported here. Import core, scheduler
and cli from their modules.

============================================================
"""

from .models import (
    SchedulerState,
    VALID_TRANSITIONS,
    CycleResult,
    REQUIRED_ENV_VARS,
    DatabaseSettings,
    TelegramSettings,
    AppConfig,
    parse_chat_ids,
)


__all__ = [
    "SchedulerState",
    "VALID_TRANSITIONS",
    "CycleResult",
    "REQUIRED_ENV_VARS",
    "DatabaseSettings",
    "TelegramSettings",
    "AppConfig",
    "parse_chat_ids",
]
