"""Scheduler state types.

All mutable scheduling state lives in one SchedulerState object so it can be
inspected and injected in tests. Nothing here is persisted; a restart starts
from an empty queue and processed set.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from epochi.intents.types import IntentKind, ParsedIntent


class SchedulerStatus(StrEnum):
    STOPPED = "stopped"
    RUNNING = "running"


@dataclass
class QueuedEntry:
    """A validated intent waiting to become due.

    ``intent_id`` is the ledger intent id; ``announced`` records whether the
    intent was actually published, so later status updates know whether a
    record exists.
    """

    intent: ParsedIntent
    namespace: str
    enqueued_at: datetime
    attempts: int = 0
    intent_id: str | None = None
    announced: bool = False
    last_error: str | None = None

    @property
    def event_id(self) -> str:
        return self.intent.source_event_id


@dataclass
class SchedulerStats:
    status: SchedulerStatus = SchedulerStatus.STOPPED
    total_checks: int = 0
    detected: int = 0
    executed: int = 0
    failed: int = 0
    queue_size: int = 0
    last_check_at: datetime | None = None
    started_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "total_checks": self.total_checks,
            "detected": self.detected,
            "executed": self.executed,
            "failed": self.failed,
            "queue_size": self.queue_size,
            "last_check_at": self.last_check_at.isoformat()
            if self.last_check_at
            else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
        }


@dataclass
class SchedulerState:
    # Keyed by source event id; dict order is queue order
    queue: dict[str, QueuedEntry] = field(default_factory=dict)
    processed: set[str] = field(default_factory=set)
    stats: SchedulerStats = field(default_factory=SchedulerStats)


@dataclass(frozen=True)
class QueueItem:
    """Read-only view of a queued entry."""

    event_id: str
    summary: str
    kind: IntentKind
    namespace: str
    due_at: datetime
    seconds_until_due: int
    attempts: int
    enqueued_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "summary": self.summary,
            "kind": self.kind.value,
            "namespace": self.namespace,
            "due_at": self.due_at.isoformat(),
            "seconds_until_due": self.seconds_until_due,
            "attempts": self.attempts,
            "enqueued_at": self.enqueued_at.isoformat(),
        }
