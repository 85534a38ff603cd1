"""
Orchestrator - Poll Scheduler.

============================================================
RESPONSIBILITY
============================================================
Drives the poll -> enrich -> format -> deliver loop.

- One cycle runs immediately on start, then one per interval
- The interval is measured from the end of the previous cycle
- Records within a cycle are handled strictly in cursor order
- A pacing delay separates successive notifications
- One failing record never stops the rest of the batch

============================================================
STATE MACHINE
============================================================
IDLE -> RUNNING -> STOPPING -> STOPPED
IDLE -> STOPPED (stopped before start)

Stop is cooperative: the record being delivered finishes,
remaining records of the batch are skipped, pending waits
are woken immediately.

============================================================
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from core.exceptions import StateTransitionError, classify_exception
from database.change_source import ChangeSource
from database.models import TokenEventRecord
from enrichment.metadata import MetadataEnricher
from notifications.formatter import TokenNotificationFormatter
from notifications.models import DeliveryReport
from notifications.telegram import TelegramNotifier

from .models import CycleResult, SchedulerState, VALID_TRANSITIONS


logger = logging.getLogger(__name__)


class PollScheduler:
    """
    Periodic change detection and notification loop.

    Runs as a single asyncio task; cycles never overlap.
    """

    def __init__(
        self,
        change_source: ChangeSource,
        enricher: MetadataEnricher,
        formatter: TokenNotificationFormatter,
        notifier: TelegramNotifier,
        poll_interval_seconds: float,
        message_delay_seconds: float = 0.0,
    ):
        self._change_source = change_source
        self._enricher = enricher
        self._formatter = formatter
        self._notifier = notifier
        self._poll_interval = poll_interval_seconds
        self._message_delay = message_delay_seconds

        self._state = SchedulerState.IDLE
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._cycle_count = 0
        self._last_result: Optional[CycleResult] = None

    # --------------------------------------------------------
    # Properties
    # --------------------------------------------------------

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == SchedulerState.RUNNING

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    @property
    def last_result(self) -> Optional[CycleResult]:
        return self._last_result

    def _transition(self, new_state: SchedulerState) -> None:
        if new_state not in VALID_TRANSITIONS[self._state]:
            raise StateTransitionError(
                f"Invalid scheduler transition {self._state.value} -> {new_state.value}",
                from_state=self._state.value,
                to_state=new_state.value,
            )
        logger.info(f"Scheduler state: {self._state.value} -> {new_state.value}")
        self._state = new_state

    # --------------------------------------------------------
    # Lifecycle
    # --------------------------------------------------------

    async def start(self) -> None:
        """Start the poll loop. The first cycle runs immediately."""
        self._transition(SchedulerState.RUNNING)
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run_loop(), name="poll-scheduler")
        logger.info(
            f"Started polling every {self._poll_interval:g}s "
            f"(message delay {self._message_delay:g}s)"
        )

    async def stop(self) -> None:
        """
        Stop the loop and wait for it to finish.

        Safe to call more than once.
        """
        if self._state == SchedulerState.IDLE:
            self._transition(SchedulerState.STOPPED)
            return
        if self._state == SchedulerState.STOPPED:
            return

        if self._state == SchedulerState.RUNNING:
            self._transition(SchedulerState.STOPPING)
            self._stop_event.set()

        if self._task is not None:
            # faults are surfaced through wait()
            await asyncio.wait({self._task})

        if self._state == SchedulerState.STOPPING:
            self._transition(SchedulerState.STOPPED)
            logger.info(f"Scheduler stopped after {self._cycle_count} cycle(s)")

    async def wait(self) -> None:
        """
        Wait for the loop to end.

        Raises whatever unexpected fault ended the loop.
        """
        if self._task is None:
            return
        await self._task

    # --------------------------------------------------------
    # Loop
    # --------------------------------------------------------

    async def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            result = await self.run_cycle()

            if result.records_found or result.poll_error:
                logger.info(
                    f"Cycle {result.cycle_id} done in {result.duration_seconds:.2f}s: "
                    f"found={result.records_found} delivered={result.records_delivered} "
                    f"failed={result.records_failed} skipped={result.records_skipped}"
                )

            if self._stop_event.is_set():
                break
            await self._pause(self._poll_interval)

    async def _pause(self, seconds: float) -> None:
        """Sleep for `seconds`, returning early when stop is requested."""
        if seconds <= 0:
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def run_cycle(self) -> CycleResult:
        """
        Run one poll cycle.

        Poll errors end the cycle early; the cursor has not moved,
        so the same rows are picked up next cycle.
        """
        self._cycle_count += 1
        result = CycleResult(
            cycle_id=uuid.uuid4().hex[:12],
            started_at=datetime.now(timezone.utc),
        )

        try:
            records = await self._change_source.poll()
        except Exception as e:
            logger.error(f"Error checking for new records: {e}")
            result.poll_error = str(e)
            result.completed_at = datetime.now(timezone.utc)
            self._last_result = result
            return result

        result.records_found = len(records)

        for index, record in enumerate(records):
            if index > 0:
                await self._pause(self._message_delay)

            if self._stop_event.is_set():
                result.records_skipped = len(records) - index
                logger.warning(
                    f"Stop requested, skipping {result.records_skipped} remaining record(s) "
                    f"from vid {record.vid}"
                )
                break

            delivered = await self._process_record(record)
            if delivered:
                result.records_delivered += 1
            else:
                result.records_failed += 1
            result.processed_cursors.append(record.vid)

        result.completed_at = datetime.now(timezone.utc)
        self._last_result = result
        return result

    async def _process_record(self, record: TokenEventRecord) -> bool:
        """Enrich, format and deliver one record. Returns True if any chat got it."""
        try:
            metadata = await self._enricher.fetch(record.token_uri) if record.token_uri else None
            message = self._formatter.format(record, metadata)
            report: DeliveryReport = await self._notifier.deliver(message)
        except Exception as e:
            logger.error(
                f"Error processing record vid={record.vid} "
                f"({classify_exception(e).value}): {e}",
                exc_info=True,
            )
            return False

        if report.all_failed:
            logger.error(f"Notification for vid={record.vid} reached no destination")
            return False

        logger.info(
            f"Notified vid={record.vid} ({record.display_label}) "
            f"to {len(report.succeeded)} chat(s)"
        )
        return True


__all__ = ["PollScheduler"]
