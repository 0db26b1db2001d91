"""Ledger audit recorder.

Encodes the four record kinds and appends them through a LedgerGateway under
deterministic record ids:

    transaction -> record_key(source event id)
    intent      -> record_key(intent id)
    proof       -> record_key(proof id)
    stats       -> record_key(owner address)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from epochi.intents.types import IntentKind, ParsedIntent
from epochi.ledger.gateway import LedgerError, LedgerGateway, LedgerRecordNotFoundError
from epochi.ledger.schemas import (
    ON_TIME_WINDOW_SECONDS,
    ExecutionProofRecord,
    IntentStatus,
    ProofStatus,
    ScheduledIntentRecord,
    SchemaKind,
    TransactionAuditRecord,
    TransactionStatus,
    UserStatsRecord,
    create_verification_hash,
    record_key,
    was_on_time,
)

logger = logging.getLogger(__name__)

_M = TypeVar("_M", bound=BaseModel)


def create_intent_id(owner_address: str, scheduled_time: datetime, nonce: str) -> str:
    """Build an intent id: ``intent-{owner prefix}-{unix time}-{nonce}``."""
    return f"intent-{owner_address[:10]}-{int(scheduled_time.timestamp())}-{nonce}"


def build_transaction_record(
    intent: ParsedIntent,
    *,
    namespace: str,
    owner_address: str,
    status: TransactionStatus,
    amount_received: Decimal | None = None,
    chain_tx_ref: str | None = None,
    notes: str = "",
    timestamp: datetime | None = None,
) -> TransactionAuditRecord:
    """Build an audit record for an execution attempt of a parsed intent."""
    timestamp = timestamp or datetime.now(UTC)
    return TransactionAuditRecord(
        timestamp=timestamp,
        id=f"{namespace}-{intent.source_event_id}-{int(timestamp.timestamp())}",
        owner_address=owner_address,
        namespace=namespace,
        source_event_id=intent.source_event_id,
        kind=intent.kind,
        from_asset=intent.from_asset,
        to_asset=intent.destination,
        amount=Decimal(intent.amount),
        amount_received=amount_received,
        chain_tx_ref=chain_tx_ref,
        status=status,
        notes=notes,
    )


@dataclass(frozen=True)
class ProofVerification:
    valid: bool
    on_time: bool
    time_delta: int
    proof: ExecutionProofRecord | None = None


class LedgerAuditRecorder:
    """Appends and reads audit records on an append-only ledger.

    Stats updates are read-modify-append. Updates for the same owner are
    serialized within this recorder; writers in other processes can still
    interleave and lose an increment.
    """

    def __init__(
        self,
        gateway: LedgerGateway,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._gateway = gateway
        self._clock = clock or (lambda: datetime.now(UTC))
        self._stats_locks: dict[str, asyncio.Lock] = {}

    @property
    def gateway(self) -> LedgerGateway:
        return self._gateway

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def record_transaction(self, record: TransactionAuditRecord) -> str:
        ref = await self._append(
            SchemaKind.TRANSACTION, record.source_event_id, record
        )
        logger.info(
            "ledger_transaction_recorded",
            extra={
                "intent.event_id": record.source_event_id,
                "ledger.ref": ref,
                "ledger.status": record.status.value,
            },
        )
        return ref

    async def get_transaction(self, event_id: str) -> TransactionAuditRecord | None:
        return await self._get(SchemaKind.TRANSACTION, event_id, TransactionAuditRecord)

    async def list_transactions(
        self, owner_address: str | None = None
    ) -> list[TransactionAuditRecord]:
        """List every audit record, optionally for one owner address."""
        records = await self._list(SchemaKind.TRANSACTION, TransactionAuditRecord)
        if owner_address is None:
            return records
        wanted = owner_address.lower()
        return [r for r in records if r.owner_address.lower() == wanted]

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    async def announce_intent(self, record: ScheduledIntentRecord) -> str:
        ref = await self._append(SchemaKind.INTENT, record.intent_id, record)
        logger.info(
            "ledger_intent_announced",
            extra={
                "ledger.intent_id": record.intent_id,
                "ledger.ref": ref,
                "ledger.scheduled_time": record.scheduled_time.isoformat(),
            },
        )
        return ref

    async def get_intent(self, intent_id: str) -> ScheduledIntentRecord | None:
        return await self._get(SchemaKind.INTENT, intent_id, ScheduledIntentRecord)

    async def update_intent_status(self, intent_id: str, status: IntentStatus) -> str:
        """Append a new snapshot of an intent with a different status.

        Raises:
            LedgerRecordNotFoundError: If the intent was never announced.
        """
        current = await self.get_intent(intent_id)
        if current is None:
            raise LedgerRecordNotFoundError(f"Intent not found: {intent_id}")

        updated = current.model_copy(update={"status": status})
        ref = await self._append(SchemaKind.INTENT, intent_id, updated)
        logger.info(
            "ledger_intent_status_updated",
            extra={
                "ledger.intent_id": intent_id,
                "ledger.status": status.value,
                "ledger.ref": ref,
            },
        )
        return ref

    async def list_intents(self) -> list[ScheduledIntentRecord]:
        """List the current state of every intent, in announcement order."""
        latest: dict[str, ScheduledIntentRecord] = {}
        for record in await self._list(SchemaKind.INTENT, ScheduledIntentRecord):
            latest[record.intent_id] = record
        return list(latest.values())

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    async def update_user_stats(
        self,
        owner_address: str,
        succeeded: bool,
        amount: Decimal,
        kind: IntentKind,
    ) -> str:
        """Fold one execution outcome into the owner's stats snapshot."""
        lock = self._stats_locks.setdefault(owner_address.lower(), asyncio.Lock())
        async with lock:
            now = self._clock()
            current = await self.get_user_stats(owner_address)
            if current is None:
                current = UserStatsRecord(
                    owner_address=owner_address,
                    first_activity_at=now,
                    last_activity_at=now,
                )

            kind_counts = dict(current.kind_counts)
            kind_counts[kind.value] = kind_counts.get(kind.value, 0) + 1
            most_used = max(kind_counts, key=lambda k: kind_counts[k])

            updated = current.model_copy(
                update={
                    "total_tx": current.total_tx + 1,
                    "success_tx": current.success_tx + (1 if succeeded else 0),
                    "failed_tx": current.failed_tx + (0 if succeeded else 1),
                    "total_volume": current.total_volume
                    + (Decimal(amount) if succeeded else Decimal(0)),
                    "last_activity_at": now,
                    "most_used_kind": IntentKind(most_used),
                    "kind_counts": kind_counts,
                }
            )
            ref = await self._append(SchemaKind.STATS, owner_address.lower(), updated)

        logger.info(
            "ledger_stats_updated",
            extra={
                "ledger.owner": owner_address,
                "ledger.total_tx": updated.total_tx,
                "ledger.success": succeeded,
            },
        )
        return ref

    async def get_user_stats(self, owner_address: str) -> UserStatsRecord | None:
        return await self._get(SchemaKind.STATS, owner_address.lower(), UserStatsRecord)

    # ------------------------------------------------------------------
    # Proofs
    # ------------------------------------------------------------------

    async def create_execution_proof(
        self,
        intent_id: str,
        chain_tx_ref: str,
        scheduled_time: datetime,
        expected_amount: Decimal,
        actual_amount: Decimal,
        success: bool,
        actual_time: datetime | None = None,
    ) -> tuple[ExecutionProofRecord, str]:
        """Record when an intent actually executed against when it was due."""
        actual_time = actual_time or self._clock()
        proof = ExecutionProofRecord(
            proof_id=f"proof-{intent_id}-{int(actual_time.timestamp())}",
            intent_id=intent_id,
            chain_tx_ref=chain_tx_ref,
            scheduled_time=scheduled_time,
            actual_time=actual_time,
            time_delta_seconds=int((actual_time - scheduled_time).total_seconds()),
            status=ProofStatus.SUCCESS if success else ProofStatus.FAILED,
            expected_amount=Decimal(expected_amount),
            actual_amount=Decimal(actual_amount),
            verification_hash=create_verification_hash(
                intent_id, chain_tx_ref, actual_amount
            ),
        )
        ref = await self._append(SchemaKind.PROOF, proof.proof_id, proof)
        logger.info(
            "ledger_proof_created",
            extra={
                "ledger.proof_id": proof.proof_id,
                "ledger.time_delta": proof.time_delta_seconds,
                "ledger.ref": ref,
            },
        )
        return proof, ref

    async def get_proof(self, proof_id: str) -> ExecutionProofRecord | None:
        return await self._get(SchemaKind.PROOF, proof_id, ExecutionProofRecord)

    async def verify_execution_proof(
        self, proof_id: str, window_seconds: int = ON_TIME_WINDOW_SECONDS
    ) -> ProofVerification:
        """Recompute a proof's verification hash and check its timing."""
        proof = await self.get_proof(proof_id)
        if proof is None:
            return ProofVerification(valid=False, on_time=False, time_delta=0)

        expected_hash = create_verification_hash(
            proof.intent_id, proof.chain_tx_ref, proof.actual_amount
        )
        return ProofVerification(
            valid=expected_hash == proof.verification_hash,
            on_time=was_on_time(proof.time_delta_seconds, window_seconds),
            time_delta=proof.time_delta_seconds,
            proof=proof,
        )

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    async def _append(self, schema: SchemaKind, natural_key: str, record: BaseModel) -> str:
        return await self._gateway.append(
            schema.value, record_key(natural_key), record.model_dump(mode="json")
        )

    async def _get(
        self, schema: SchemaKind, natural_key: str, model: type[_M]
    ) -> _M | None:
        payload = await self._gateway.get_by_key(
            schema.value, self._gateway.publisher, record_key(natural_key)
        )
        logger.debug(
            "ledger_read",
            extra={"ledger.schema": schema.value, "ledger.found": payload is not None},
        )
        if payload is None:
            return None
        return _decode(model, payload)

    async def _list(self, schema: SchemaKind, model: type[_M]) -> list[_M]:
        payloads = await self._gateway.get_all_by_owner(
            schema.value, self._gateway.publisher
        )
        return [_decode(model, payload) for payload in payloads]


def _decode(model: type[_M], payload: dict) -> _M:
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise LedgerError(f"Malformed {model.__name__} record: {e}") from e
