"""Calendar-driven transaction scheduling."""

from epochi.scheduling.scheduler import (
    DEFAULT_LOOKAHEAD,
    DEFAULT_MAX_RETRIES,
    DEFAULT_POLL_INTERVAL,
    TransactionScheduler,
)
from epochi.scheduling.state import (
    QueuedEntry,
    QueueItem,
    SchedulerState,
    SchedulerStats,
    SchedulerStatus,
)

__all__ = [
    "DEFAULT_LOOKAHEAD",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_POLL_INTERVAL",
    "QueueItem",
    "QueuedEntry",
    "SchedulerState",
    "SchedulerStats",
    "SchedulerStatus",
    "TransactionScheduler",
]
