"""
Orchestrator - Models.

============================================================
RESPONSIBILITY
============================================================
Data models for the orchestrator.

- Application configuration (loaded from environment)
- Poll scheduler states and valid transitions
- Poll cycle results

============================================================
"""

import os
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

from core.constants import (
    DEFAULT_EVENTS_TABLE,
    DEFAULT_IPFS_GATEWAY_URL,
    DEFAULT_MESSAGE_DELAY_MS,
    DEFAULT_METADATA_TIMEOUT_SECONDS,
    DEFAULT_POLL_INTERVAL_MS,
    DEFAULT_TELEGRAM_MAX_ATTEMPTS,
)
from core.exceptions import InvalidConfigError, MissingConfigError
from database.settings import DatabaseSettings


# ============================================================
# SCHEDULER STATE
# ============================================================

class SchedulerState(Enum):
    """Poll scheduler lifecycle states."""

    IDLE = "idle"
    """Created, not started."""

    RUNNING = "running"
    """Poll loop active."""

    STOPPING = "stopping"
    """Stop requested, waiting for in-flight work."""

    STOPPED = "stopped"
    """Loop finished. Terminal."""

    @property
    def is_terminal(self) -> bool:
        """Check if state is terminal."""
        return self == SchedulerState.STOPPED


VALID_TRANSITIONS: Dict[SchedulerState, Set[SchedulerState]] = {
    SchedulerState.IDLE: {SchedulerState.RUNNING, SchedulerState.STOPPED},
    SchedulerState.RUNNING: {SchedulerState.STOPPING},
    SchedulerState.STOPPING: {SchedulerState.STOPPED},
    SchedulerState.STOPPED: set(),
}


# ============================================================
# CYCLE RESULT
# ============================================================

@dataclass
class CycleResult:
    """Result of one poll cycle."""

    cycle_id: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    records_found: int = 0
    records_delivered: int = 0
    records_failed: int = 0
    records_skipped: int = 0
    poll_error: Optional[str] = None
    processed_cursors: List[int] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True when polling worked and no record failed."""
        return self.poll_error is None and self.records_failed == 0

    @property
    def duration_seconds(self) -> float:
        """Get total duration in seconds."""
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return 0.0

    @property
    def duration(self) -> timedelta:
        """Get duration as timedelta."""
        return timedelta(seconds=self.duration_seconds)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "cycle_id": self.cycle_id,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "success": self.success,
            "duration_seconds": self.duration_seconds,
            "records_found": self.records_found,
            "records_delivered": self.records_delivered,
            "records_failed": self.records_failed,
            "records_skipped": self.records_skipped,
            "poll_error": self.poll_error,
        }


# ============================================================
# CONFIGURATION
# ============================================================

REQUIRED_ENV_VARS: Tuple[str, ...] = (
    "DB_HOST",
    "DB_PORT",
    "DB_USER",
    "DB_PASSWORD",
    "DB_NAME",
    "TELEGRAM_BOT_TOKEN",
    "TELEGRAM_CHAT_ID",
)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


@dataclass(frozen=True)
class TelegramSettings:
    """Telegram bot credentials and destinations."""

    bot_token: str
    chat_ids: Tuple[str, ...]
    max_attempts: int = DEFAULT_TELEGRAM_MAX_ATTEMPTS


@dataclass(frozen=True)
class AppConfig:
    """Complete application configuration."""

    database: DatabaseSettings
    telegram: TelegramSettings
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    """Delay between the end of one poll cycle and the start of the next."""

    message_delay_ms: int = DEFAULT_MESSAGE_DELAY_MS
    """Pacing delay between successive notifications within a cycle."""

    metadata_timeout_seconds: float = DEFAULT_METADATA_TIMEOUT_SECONDS
    ipfs_gateway_url: str = DEFAULT_IPFS_GATEWAY_URL
    log_level: str = "INFO"
    log_format: str = "text"

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval_ms / 1000.0

    @property
    def message_delay_seconds(self) -> float:
        return self.message_delay_ms / 1000.0

    @staticmethod
    def validate_env(environ: Optional[Mapping[str, str]] = None) -> List[str]:
        """
        Validate the environment, return every problem found.

        Missing required keys are reported together in a single entry
        so operators see the complete list at once.
        """
        env = os.environ if environ is None else environ
        errors: List[str] = []

        missing = [key for key in REQUIRED_ENV_VARS if not env.get(key, "").strip()]
        if missing:
            errors.append(f"Missing required environment variables: {', '.join(missing)}")

        for key in ("DB_PORT", "POLL_INTERVAL", "MESSAGE_DELAY", "TELEGRAM_MAX_ATTEMPTS"):
            raw = env.get(key, "").strip()
            if raw and not _is_int(raw):
                errors.append(f"{key} must be an integer, got {raw!r}")

        raw_timeout = env.get("METADATA_TIMEOUT", "").strip()
        if raw_timeout and not _is_float(raw_timeout):
            errors.append(f"METADATA_TIMEOUT must be a number, got {raw_timeout!r}")

        table = env.get("EVENTS_TABLE", "").strip()
        if table and not _IDENTIFIER.match(table):
            errors.append(f"EVENTS_TABLE is not a valid table name: {table!r}")

        return errors

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AppConfig":
        """
        Load configuration from environment variables.

        Raises:
            MissingConfigError: listing every missing required key
            InvalidConfigError: for the first unparsable value
        """
        env = os.environ if environ is None else environ

        missing = [key for key in REQUIRED_ENV_VARS if not env.get(key, "").strip()]
        if missing:
            raise MissingConfigError(missing)

        chat_ids = parse_chat_ids(env["TELEGRAM_CHAT_ID"])
        if not chat_ids:
            raise InvalidConfigError("TELEGRAM_CHAT_ID", env["TELEGRAM_CHAT_ID"], "no chat ids")

        table = env.get("EVENTS_TABLE", DEFAULT_EVENTS_TABLE).strip() or DEFAULT_EVENTS_TABLE
        if not _IDENTIFIER.match(table):
            raise InvalidConfigError("EVENTS_TABLE", table, "not a valid table name")

        database = DatabaseSettings(
            host=env["DB_HOST"].strip(),
            port=_int_setting(env, "DB_PORT", 5432),
            user=env["DB_USER"].strip(),
            password=env["DB_PASSWORD"],
            database=env["DB_NAME"].strip(),
            ssl=env.get("DB_SSLMODE", "").strip().lower() == "require",
            events_table=table,
        )

        telegram = TelegramSettings(
            bot_token=env["TELEGRAM_BOT_TOKEN"].strip(),
            chat_ids=chat_ids,
            max_attempts=_int_setting(
                env, "TELEGRAM_MAX_ATTEMPTS", DEFAULT_TELEGRAM_MAX_ATTEMPTS, minimum=1
            ),
        )

        raw_timeout = env.get("METADATA_TIMEOUT", "").strip()
        try:
            metadata_timeout = float(raw_timeout) if raw_timeout else DEFAULT_METADATA_TIMEOUT_SECONDS
        except ValueError:
            raise InvalidConfigError("METADATA_TIMEOUT", raw_timeout, "must be a number")

        return cls(
            database=database,
            telegram=telegram,
            poll_interval_ms=_int_setting(env, "POLL_INTERVAL", DEFAULT_POLL_INTERVAL_MS, minimum=1),
            message_delay_ms=_int_setting(env, "MESSAGE_DELAY", DEFAULT_MESSAGE_DELAY_MS, minimum=0),
            metadata_timeout_seconds=metadata_timeout,
            ipfs_gateway_url=env.get("IPFS_GATEWAY_URL", "").strip() or DEFAULT_IPFS_GATEWAY_URL,
            log_level=env.get("LOG_LEVEL", "INFO").strip().upper() or "INFO",
            log_format=env.get("LOG_FORMAT", "text").strip().lower() or "text",
        )


def parse_chat_ids(raw: str) -> Tuple[str, ...]:
    """Parse a comma-separated chat id list, dropping blanks and duplicates."""
    seen: List[str] = []
    for chat_id in raw.split(","):
        chat_id = chat_id.strip()
        if chat_id and chat_id not in seen:
            seen.append(chat_id)
    return tuple(seen)


def _is_int(raw: str) -> bool:
    try:
        int(raw)
    except ValueError:
        return False
    return True


def _is_float(raw: str) -> bool:
    try:
        float(raw)
    except ValueError:
        return False
    return True


def _int_setting(
    env: Mapping[str, str],
    key: str,
    default: int,
    minimum: Optional[int] = None,
) -> int:
    raw = env.get(key, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise InvalidConfigError(key, raw, "must be an integer")
    if minimum is not None and value < minimum:
        raise InvalidConfigError(key, raw, f"must be at least {minimum}")
    return value


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
