"""Ledger record schemas and pure helpers over them.

Four record kinds are appended to the ledger:

- TransactionAuditRecord: what the executor actually did for an event
- ScheduledIntentRecord: a commitment announced before execution
- UserStatsRecord: running per-owner activity snapshot
- ExecutionProofRecord: promised vs. actual timing for one intent

Amounts are Decimals and serialize to strings in JSON.
"""

from __future__ import annotations

import hashlib
import re
from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, Field

from epochi.intents.types import IntentKind

_RECORD_KEY_PATTERN = re.compile(r"^0x[0-9a-fA-F]{64}$")

# Proofs are on time when the actual execution is within this many seconds
ON_TIME_WINDOW_SECONDS = 60


class SchemaKind(StrEnum):
    TRANSACTION = "transaction"
    INTENT = "intent"
    STATS = "stats"
    PROOF = "proof"


class TransactionStatus(StrEnum):
    PENDING = "pending"
    EXECUTED = "executed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class IntentStatus(StrEnum):
    SCHEDULED = "scheduled"
    EXECUTING = "executing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    FAILED = "failed"


class ProofStatus(StrEnum):
    SUCCESS = "success"
    FAILED = "failed"


class ReputationTier(StrEnum):
    NEWCOMER = "newcomer"
    RISING_STAR = "rising_star"
    ACTIVE_TRADER = "active_trader"
    DIAMOND_HANDS = "diamond_hands"
    NEEDS_IMPROVEMENT = "needs_improvement"
    REGULAR = "regular"


class TransactionAuditRecord(BaseModel):
    """Immutable audit entry for one executed (or failed) transaction."""

    timestamp: datetime
    id: str
    owner_address: str
    namespace: str
    source_event_id: str
    kind: IntentKind
    from_asset: str
    to_asset: str
    amount: Decimal
    amount_received: Decimal | None = None
    chain_tx_ref: str | None = None
    status: TransactionStatus
    notes: str = ""


class ScheduledIntentRecord(BaseModel):
    """Pre-announced commitment to execute at a scheduled time.

    Status changes are appended as new full records under the same intent id;
    the latest record is current.
    """

    scheduled_time: datetime
    intent_id: str
    owner_address: str
    kind: IntentKind
    from_asset: str
    to_asset: str
    amount: Decimal
    description: str = ""
    created_at: datetime
    status: IntentStatus = IntentStatus.SCHEDULED


class UserStatsRecord(BaseModel):
    """Running activity snapshot for one owner address."""

    owner_address: str
    total_tx: int = 0
    success_tx: int = 0
    failed_tx: int = 0
    total_volume: Decimal = Decimal(0)
    first_activity_at: datetime
    last_activity_at: datetime
    most_used_kind: IntentKind | None = None
    kind_counts: dict[str, int] = Field(default_factory=dict)


class ExecutionProofRecord(BaseModel):
    """Binds an intent to its execution: promised time vs. actual time."""

    proof_id: str
    intent_id: str
    chain_tx_ref: str
    scheduled_time: datetime
    actual_time: datetime
    time_delta_seconds: int
    status: ProofStatus
    expected_amount: Decimal
    actual_amount: Decimal
    verification_hash: str


def record_key(natural_key: str) -> str:
    """Get the ledger record id for a natural key.

    Keys that already look like a 32-byte hex id are used as-is; anything
    else is hashed.
    """
    if _RECORD_KEY_PATTERN.match(natural_key):
        return natural_key
    return "0x" + hashlib.sha256(natural_key.encode("utf-8")).hexdigest()


def canonical_amount(amount: Decimal | str) -> str:
    """Render an amount in normalized fixed-point form ("1.50" -> "1.5")."""
    value = Decimal(amount).normalize()
    return format(value, "f")


def create_verification_hash(
    intent_id: str, chain_tx_ref: str, actual_amount: Decimal | str
) -> str:
    payload = f"{intent_id}:{chain_tx_ref}:{canonical_amount(actual_amount)}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def was_on_time(
    time_delta_seconds: int, window_seconds: int = ON_TIME_WINDOW_SECONDS
) -> bool:
    return abs(time_delta_seconds) <= window_seconds


def format_time_delta(seconds: int) -> str:
    """Format a signed delay as "+42s", "-3m" or "+2h"."""
    sign = "+" if seconds >= 0 else "-"
    magnitude = abs(seconds)
    if magnitude < 60:
        return f"{sign}{magnitude}s"
    if magnitude < 3600:
        return f"{sign}{magnitude // 60}m"
    return f"{sign}{magnitude // 3600}h"


def success_rate(stats: UserStatsRecord) -> float:
    """Percentage of successful transactions (0-100)."""
    if stats.total_tx == 0:
        return 0.0
    return stats.success_tx / stats.total_tx * 100


def reputation_tier(stats: UserStatsRecord) -> ReputationTier:
    """Classify an owner from their latest stats snapshot."""
    total = stats.total_tx
    rate = success_rate(stats)

    if total < 5:
        return ReputationTier.NEWCOMER
    if total < 20 and rate > 80:
        return ReputationTier.RISING_STAR
    if total < 50 and rate > 90:
        return ReputationTier.ACTIVE_TRADER
    if total >= 50 and rate > 95:
        return ReputationTier.DIAMOND_HANDS
    if rate < 50:
        return ReputationTier.NEEDS_IMPROVEMENT
    return ReputationTier.REGULAR
