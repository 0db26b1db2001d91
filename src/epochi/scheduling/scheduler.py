"""Transaction scheduler: polls a calendar and executes due intents.

Each tick:

1. Fetch events in ``[now - DUE_GRACE, now + lookahead]``, so an event that
   came due between two runs is still picked up.
2. Queue every new event whose title parses into a valid intent.
3. Execute due entries in queue order, one at a time.
4. Write outcomes back to the calendar and (best effort) the ledger.

Failed executions stay queued and are retried on later ticks until they
reach ``max_retries``, at which point they fail permanently. Terminal
events are remembered in the processed set and never queued again.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from decimal import Decimal

from epochi.calendar.gateway import (
    CalendarEvent,
    CalendarGateway,
    CalendarNotAuthenticatedError,
)
from epochi.calendar.notes import (
    EXECUTED_MARKER,
    format_executed_note,
    format_failed_note,
)
from epochi.execution.executor import TransactionExecutor
from epochi.execution.types import ExecutionErrorKind, ExecutionResult
from epochi.intents.parser import (
    DUE_GRACE,
    format_intent,
    parse_event,
    validate_intent,
)
from epochi.ledger.recorder import LedgerAuditRecorder, create_intent_id
from epochi.ledger.schemas import IntentStatus, ScheduledIntentRecord
from epochi.scheduling.state import (
    QueuedEntry,
    QueueItem,
    SchedulerState,
    SchedulerStats,
    SchedulerStatus,
)

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 30.0
DEFAULT_LOOKAHEAD = timedelta(hours=24)
DEFAULT_MAX_RETRIES = 3

# Heartbeat every 120 ticks (~1 hour at the default interval)
HEARTBEAT_INTERVAL = 120


class TransactionScheduler:
    """Watches a calendar and executes the transactions it declares.

    Example:
        scheduler = TransactionScheduler(calendar, executor, recorder=recorder)
        await scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        calendar: CalendarGateway,
        executor: TransactionExecutor,
        *,
        recorder: LedgerAuditRecorder | None = None,
        namespace: str = "primary",
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        lookahead: timedelta = DEFAULT_LOOKAHEAD,
        max_retries: int = DEFAULT_MAX_RETRIES,
        announce_intents: bool = True,
        state: SchedulerState | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._calendar = calendar
        self._executor = executor
        self._recorder = recorder
        self._namespace = namespace
        self._poll_interval = poll_interval
        self._lookahead = lookahead
        self._max_retries = max_retries
        self._announce_intents = announce_intents
        self._state = state or SchedulerState()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._tick_lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state.stats.status == SchedulerStatus.RUNNING

    async def start(self) -> None:
        """Start polling.

        Raises:
            CalendarNotAuthenticatedError: If the calendar cannot be read.
        """
        if self.is_running:
            return

        if not await self._calendar.is_authenticated():
            raise CalendarNotAuthenticatedError(
                "Calendar not authenticated; refusing to start scheduler"
            )

        self._stop_event = asyncio.Event()
        self._state.stats.status = SchedulerStatus.RUNNING
        self._state.stats.started_at = self._clock()
        logger.info(
            "scheduler_started",
            extra={
                "scheduler.namespace": self._namespace,
                "scheduler.poll_interval": self._poll_interval,
            },
        )
        self._task = asyncio.create_task(self._poll_loop())

    async def stop(self) -> None:
        """Stop polling, letting an in-flight tick finish first."""
        if not self.is_running:
            return

        self._stop_event.set()
        if self._task:
            await self._task
            self._task = None
        self._state.stats.status = SchedulerStatus.STOPPED
        logger.info("scheduler_stopped", extra=self._stats_extra())

    async def _poll_loop(self) -> None:
        ticks = 0
        while not self._stop_event.is_set():
            ticks += 1
            if ticks % HEARTBEAT_INTERVAL == 0:
                logger.info("scheduler_heartbeat", extra=self._stats_extra())
            try:
                await self.tick()
            except Exception as e:
                logger.error(
                    "scheduler_tick_error",
                    extra={"error.message": str(e)},
                    exc_info=True,
                )
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self._poll_interval
                )
            except TimeoutError:
                pass

    async def tick(self) -> None:
        """Run one polling pass: intake new events, then execute due entries."""
        async with self._tick_lock:
            stats = self._state.stats
            now = self._clock()
            stats.total_checks += 1
            stats.last_check_at = now

            try:
                events = await self._calendar.events_between(
                    now - DUE_GRACE, now + self._lookahead
                )
            except Exception as e:
                logger.error(
                    "calendar_fetch_failed",
                    extra={"error.message": str(e), "scheduler.tick": stats.total_checks},
                )
                events = []

            for event in events:
                await self._intake(event, now)

            await self._process_due(now)
            stats.queue_size = len(self._state.queue)
            logger.debug(
                "scheduler_tick_complete",
                extra={
                    "scheduler.tick": stats.total_checks,
                    "scheduler.events": len(events),
                    "scheduler.queue_size": stats.queue_size,
                },
            )

    def status(self) -> SchedulerStats:
        return replace(self._state.stats)

    def queue(self) -> list[QueueItem]:
        """Get pending entries in queue order."""
        now = self._clock()
        return [
            QueueItem(
                event_id=event_id,
                summary=format_intent(entry.intent),
                kind=entry.intent.kind,
                namespace=entry.namespace,
                due_at=entry.intent.due_at,
                seconds_until_due=int((entry.intent.due_at - now).total_seconds()),
                attempts=entry.attempts,
                enqueued_at=entry.enqueued_at,
            )
            for event_id, entry in self._state.queue.items()
        ]

    def clear_processed_cache(self) -> int:
        """Forget every terminal event so it can be processed again.

        Returns:
            Number of event ids cleared.
        """
        count = len(self._state.processed)
        self._state.processed.clear()
        logger.warning("processed_cache_cleared", extra={"scheduler.cleared": count})
        return count

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    async def _intake(self, event: CalendarEvent, now: datetime) -> None:
        state = self._state
        if event.id in state.processed:
            return

        if EXECUTED_MARKER in event.description:
            state.processed.add(event.id)
            logger.debug("event_already_executed", extra={"intent.event_id": event.id})
            return

        if event.id in state.queue:
            return

        intent = parse_event(event)
        if not validate_intent(intent, now=now):
            logger.debug(
                "event_not_actionable",
                extra={
                    "intent.event_id": event.id,
                    "intent.title": event.title,
                    "intent.error": intent.error,
                },
            )
            return

        entry = QueuedEntry(intent=intent, namespace=self._namespace, enqueued_at=now)
        state.queue[event.id] = entry
        state.stats.detected += 1
        logger.info(
            "intent_queued",
            extra={
                "intent.event_id": event.id,
                "intent.summary": format_intent(intent),
                "intent.due_at": intent.due_at.isoformat(),
            },
        )

        if self._recorder is not None:
            await self._announce(self._recorder, entry, now)

    async def _announce(
        self, recorder: LedgerAuditRecorder, entry: QueuedEntry, now: datetime
    ) -> None:
        intent = entry.intent
        try:
            owner = self._executor.wallet.get_address(entry.namespace)
            entry.intent_id = create_intent_id(
                owner, intent.due_at, intent.source_event_id
            )
            if not self._announce_intents:
                return
            await recorder.announce_intent(
                ScheduledIntentRecord(
                    scheduled_time=intent.due_at,
                    intent_id=entry.intent_id,
                    owner_address=owner,
                    kind=intent.kind,
                    from_asset=intent.from_asset,
                    to_asset=intent.destination,
                    amount=Decimal(intent.amount),
                    description=intent.source_title,
                    created_at=now,
                )
            )
            entry.announced = True
        except Exception:
            logger.warning(
                "intent_announce_failed",
                extra={"intent.event_id": entry.event_id},
                exc_info=True,
            )

    # ------------------------------------------------------------------
    # Due processing
    # ------------------------------------------------------------------

    async def _process_due(self, now: datetime) -> None:
        for entry in list(self._state.queue.values()):
            if entry.intent.due_at > now:
                continue

            if entry.attempts >= self._max_retries:
                await self._fail_permanently(entry)
                continue

            try:
                result = await self._executor.execute(entry.intent, entry.namespace)
            except Exception as e:
                logger.error(
                    "execution_error",
                    extra={"intent.event_id": entry.event_id, "error.message": str(e)},
                    exc_info=True,
                )
                result = ExecutionResult.failure(str(e), ExecutionErrorKind.NETWORK)

            if result.is_not_due:
                continue

            if result.success:
                await self._complete(entry, result)
                continue

            entry.attempts += 1
            entry.last_error = result.error
            logger.warning(
                "execution_attempt_failed",
                extra={
                    "intent.event_id": entry.event_id,
                    "scheduler.attempts": entry.attempts,
                    "scheduler.max_retries": self._max_retries,
                    "error.message": result.error,
                },
            )
            if entry.attempts >= self._max_retries:
                await self._fail_permanently(entry)

    async def _complete(self, entry: QueuedEntry, result: ExecutionResult) -> None:
        state = self._state
        executed_at = self._clock()
        await self._annotate(
            entry.event_id, format_executed_note(entry.intent, result, executed_at)
        )

        state.processed.add(entry.event_id)
        state.queue.pop(entry.event_id, None)
        state.stats.executed += 1
        logger.info(
            "transaction_executed",
            extra={
                "intent.event_id": entry.event_id,
                "intent.summary": format_intent(entry.intent),
                "execution.tx_ref": result.chain_tx_ref,
            },
        )

        if self._recorder is None:
            return

        recorder = self._recorder
        intent = entry.intent
        amount = Decimal(intent.amount)
        if entry.announced and entry.intent_id:
            await self._best_effort(
                "intent_completed",
                entry,
                lambda: recorder.update_intent_status(
                    entry.intent_id or "", IntentStatus.COMPLETED
                ),
            )
        if entry.intent_id and result.chain_tx_ref:
            await self._best_effort(
                "proof",
                entry,
                lambda: recorder.create_execution_proof(
                    intent_id=entry.intent_id or "",
                    chain_tx_ref=result.chain_tx_ref or "",
                    scheduled_time=intent.due_at,
                    expected_amount=amount,
                    actual_amount=result.amount_received or amount,
                    success=True,
                    actual_time=executed_at,
                ),
            )
        await self._best_effort(
            "stats",
            entry,
            lambda: recorder.update_user_stats(
                self._executor.wallet.get_address(entry.namespace),
                succeeded=True,
                amount=amount,
                kind=intent.kind,
            ),
        )

    async def _fail_permanently(self, entry: QueuedEntry) -> None:
        state = self._state
        failed_at = self._clock()
        await self._annotate(
            entry.event_id,
            format_failed_note(entry.last_error, entry.attempts, failed_at),
        )

        state.processed.add(entry.event_id)
        state.queue.pop(entry.event_id, None)
        state.stats.failed += 1
        logger.error(
            "transaction_failed_permanently",
            extra={
                "intent.event_id": entry.event_id,
                "intent.summary": format_intent(entry.intent),
                "scheduler.attempts": entry.attempts,
                "error.message": entry.last_error,
            },
        )

        if self._recorder is None:
            return

        recorder = self._recorder
        if entry.announced and entry.intent_id:
            await self._best_effort(
                "intent_failed",
                entry,
                lambda: recorder.update_intent_status(
                    entry.intent_id or "", IntentStatus.FAILED
                ),
            )
        await self._best_effort(
            "stats",
            entry,
            lambda: recorder.update_user_stats(
                self._executor.wallet.get_address(entry.namespace),
                succeeded=False,
                amount=Decimal(entry.intent.amount),
                kind=entry.intent.kind,
            ),
        )

    async def _annotate(self, event_id: str, text: str) -> None:
        try:
            await self._calendar.append_description(event_id, text)
        except Exception:
            logger.warning(
                "calendar_annotation_failed",
                extra={"intent.event_id": event_id},
                exc_info=True,
            )

    async def _best_effort(
        self,
        action: str,
        entry: QueuedEntry,
        call: Callable[[], Awaitable[object]],
    ) -> None:
        try:
            await call()
        except Exception:
            logger.warning(
                "ledger_followup_failed",
                extra={"ledger.action": action, "intent.event_id": entry.event_id},
                exc_info=True,
            )

    def _stats_extra(self) -> dict[str, object]:
        stats = self._state.stats
        return {
            "scheduler.total_checks": stats.total_checks,
            "scheduler.executed": stats.executed,
            "scheduler.failed": stats.failed,
            "scheduler.queue_size": stats.queue_size,
        }
