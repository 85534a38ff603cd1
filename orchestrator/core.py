"""
Orchestrator - Core.

============================================================
RESPONSIBILITY
============================================================
Application lifecycle for the token event notifier.

- Wires database, enrichment, notifications and scheduler
- Runs the startup sequence in strict order
- Handles signals (SIGINT, SIGTERM)
- Releases every resource on shutdown

============================================================
STARTUP SEQUENCE
============================================================
1. Configuration (complete, all missing keys reported together)
2. Database reachability
3. Telegram reachability
4. Cursor initialization
5. Online notification (fails only if no chat received it)
6. Scheduler start

Any failure raises StartupError and no loop is started.
A stop request (signal) during startup ends the sequence at
the next stage boundary; the process then exits cleanly.

============================================================
"""

import asyncio
import json
import logging
import signal
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Set

from sqlalchemy.ext.asyncio import AsyncEngine

from core.exceptions import (
    ConfigurationError,
    ShutdownError,
    StartupError,
    classify_exception,
)
from database.change_source import ChangeSource
from database.engine import create_database_engine, dispose_engine
from database.repository import TokenEventRepository
from enrichment.metadata import MetadataEnricher
from monitoring.health_checks import HealthChecker
from notifications.formatter import TokenNotificationFormatter
from notifications.telegram import TelegramNotifier

from .models import AppConfig
from .scheduler import PollScheduler


# ============================================================
# LOGGING SETUP
# ============================================================

def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
    correlation_id: Optional[str] = None,
) -> logging.Logger:
    """
    Set up structured logging.

    Args:
        level: Log level
        log_format: Output format (json or text)
        correlation_id: Correlation ID for tracing

    Returns:
        Configured logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter: logging.Formatter = JsonFormatter(correlation_id)
    else:
        formatter = logging.Formatter(
            f"%(asctime)s | %(levelname)-8s | %(name)s | {correlation_id or ''} | %(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    # aiohttp access noise
    logging.getLogger("aiohttp").setLevel(max(log_level, logging.WARNING))

    return logging.getLogger("orchestrator")


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def __init__(self, correlation_id: Optional[str] = None):
        super().__init__()
        self._correlation_id = correlation_id or ""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": self._correlation_id,
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


logger = logging.getLogger(__name__)


# ============================================================
# APPLICATION
# ============================================================

class NotifierApplication:
    """
    The token event notifier process.

    Collaborators may be injected (tests); anything not injected
    is built from configuration.
    """

    def __init__(
        self,
        config: AppConfig,
        engine: Optional[AsyncEngine] = None,
        change_source: Optional[ChangeSource] = None,
        enricher: Optional[MetadataEnricher] = None,
        notifier: Optional[TelegramNotifier] = None,
        formatter: Optional[TokenNotificationFormatter] = None,
        health_checker: Optional[HealthChecker] = None,
        scheduler: Optional[PollScheduler] = None,
    ):
        self._config = config

        self._engine = engine
        if self._engine is None and change_source is None:
            self._engine = create_database_engine(config.database)

        self._change_source = change_source or ChangeSource(
            TokenEventRepository(self._engine, table=config.database.events_table)
        )
        self._enricher = enricher or MetadataEnricher(
            timeout=config.metadata_timeout_seconds,
            ipfs_gateway_url=config.ipfs_gateway_url,
        )
        self._notifier = notifier or TelegramNotifier(
            bot_token=config.telegram.bot_token,
            chat_ids=config.telegram.chat_ids,
            max_attempts=config.telegram.max_attempts,
        )
        self._formatter = formatter or TokenNotificationFormatter()
        self._health_checker = health_checker or HealthChecker(
            engine=self._engine,
            notifier=self._notifier,
        )
        self._scheduler = scheduler or PollScheduler(
            change_source=self._change_source,
            enricher=self._enricher,
            formatter=self._formatter,
            notifier=self._notifier,
            poll_interval_seconds=config.poll_interval_seconds,
            message_delay_seconds=config.message_delay_seconds,
        )

        self._started = False
        self._stop_requested = False
        self._closed = False
        self._shutdown_errors: List[ShutdownError] = []
        self._signal_tasks: Set[asyncio.Task] = set()
        self._installed_signals: list = []

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "NotifierApplication":
        """
        Build the application from environment configuration.

        Raises:
            StartupError: configuration is incomplete or invalid
        """
        try:
            config = AppConfig.from_env(environ)
        except ConfigurationError as e:
            raise StartupError(str(e), stage="configuration", cause=e) from e
        return cls(config)

    # --------------------------------------------------------
    # Properties
    # --------------------------------------------------------

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def scheduler(self) -> PollScheduler:
        return self._scheduler

    @property
    def change_source(self) -> ChangeSource:
        return self._change_source

    @property
    def is_started(self) -> bool:
        return self._started

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    @property
    def shutdown_errors(self) -> List[ShutdownError]:
        """Failures of individual shutdown steps from the last shutdown."""
        return list(self._shutdown_errors)

    # --------------------------------------------------------
    # Lifecycle
    # --------------------------------------------------------

    async def start(self) -> None:
        """
        Run the startup sequence.

        Returns early, without starting the loop, if a stop was
        requested while a stage was running.

        Raises:
            StartupError: at the first failing stage
        """
        logger.info("=== NOTIFIER STARTUP SEQUENCE ===")

        database = await self._health_checker.check_database()
        if not database.is_healthy:
            raise StartupError(
                f"Database unreachable: {database.message}",
                stage="database",
            )
        if self._abandon_startup("database"):
            return

        telegram = await self._health_checker.check_telegram()
        if not telegram.is_healthy:
            raise StartupError(
                f"Telegram unreachable: {telegram.message}",
                stage="telegram",
            )
        if self._abandon_startup("telegram"):
            return

        await self._change_source.initialize()
        if self._abandon_startup("cursor"):
            return

        online = self._formatter.format_startup(
            self._config.database.events_table,
            self._config.poll_interval_seconds,
        )
        report = await self._notifier.send_text(online)
        if report.all_failed:
            raise StartupError(
                "Online notification failed for every destination",
                stage="online_notification",
                context={"failed": list(report.failed)},
            )
        if self._abandon_startup("online_notification"):
            return

        await self._scheduler.start()
        self._started = True

        logger.info(
            f"=== NOTIFIER STARTUP COMPLETE === "
            f"table={self._config.database.events_table} "
            f"cursor={self._change_source.last_cursor} "
            f"chats={len(self._config.telegram.chat_ids)}"
        )

    async def run(self) -> int:
        """
        Start, run until stopped, shut down.

        Returns:
            Exit code (0 after a signal, 1 on startup failure or fault)
        """
        try:
            self._install_signal_handlers()
            await self.start()
            await self._scheduler.wait()
            return 0

        except StartupError as e:
            logger.critical(f"Startup failed: {e.to_log_format()}")
            return 1
        except Exception as e:
            logger.critical(
                f"Fatal error in poll loop ({classify_exception(e).value}): {e}",
                exc_info=True,
            )
            return 1
        finally:
            await self.shutdown()

    async def stop(self) -> None:
        """Request a graceful stop, during startup or of the poll loop."""
        self._stop_requested = True
        await self._scheduler.stop()

    def _abandon_startup(self, completed_stage: str) -> bool:
        if not self._stop_requested:
            return False
        logger.info(
            f"Stop requested during startup after stage '{completed_stage}', "
            f"not starting the poll loop"
        )
        return True

    async def shutdown(self) -> None:
        """Release every resource. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True

        logger.info("=== NOTIFIER SHUTDOWN SEQUENCE ===")
        self._restore_signal_handlers()

        steps = (
            ("scheduler", self._scheduler.stop),
            ("enricher", self._enricher.close),
            ("notifier", self._notifier.close),
            ("database", lambda: dispose_engine(self._engine)),
        )
        self._shutdown_errors = []
        for component, step in steps:
            try:
                await step()
            except Exception as e:
                error = ShutdownError(
                    f"Shutdown step failed: {e}",
                    component=component,
                    cause=e,
                )
                self._shutdown_errors.append(error)
                logger.error(error.to_log_format())

        logger.info("=== NOTIFIER SHUTDOWN COMPLETE ===")

    # --------------------------------------------------------
    # Signal Handlers
    # --------------------------------------------------------

    def _install_signal_handlers(self) -> None:
        """Install signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        if sys.platform == "win32":
            # no loop signal handlers on Windows
            def handler(signum: int, frame: Any) -> None:
                loop.call_soon_threadsafe(self._on_signal, signal.Signals(signum))

            signal.signal(signal.SIGINT, handler)
            return

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._on_signal, sig)
            self._installed_signals.append(sig)

    def _restore_signal_handlers(self) -> None:
        """Restore original signal handlers."""
        if not self._installed_signals:
            return
        loop = asyncio.get_running_loop()
        for sig in self._installed_signals:
            loop.remove_signal_handler(sig)
        self._installed_signals = []

    def _on_signal(self, sig: signal.Signals) -> None:
        logger.info(f"Received signal {sig.name}")
        task = asyncio.create_task(self.stop())
        self._signal_tasks.add(task)
        task.add_done_callback(self._signal_tasks.discard)

    # --------------------------------------------------------
    # Status
    # --------------------------------------------------------

    def get_status(self) -> Dict[str, Any]:
        last = self._scheduler.last_result
        return {
            "started": self._started,
            "scheduler_state": self._scheduler.state.value,
            "cycles": self._scheduler.cycle_count,
            "last_cursor": self._change_source.last_cursor,
            "last_cycle": last.to_dict() if last else None,
            "time": datetime.now(timezone.utc).isoformat(),
        }


__all__ = ["setup_logging", "JsonFormatter", "NotifierApplication"]
