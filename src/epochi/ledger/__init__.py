"""Append-only ledger: record schemas, gateways and the audit recorder.

Public API:
- LedgerAuditRecorder: Append/read the four record kinds
- MemoryLedgerGateway / JsonlLedgerGateway: Gateway implementations
- reputation_tier / success_rate: Pure functions over stats snapshots
"""

from epochi.ledger.gateway import (
    JsonlLedgerGateway,
    LedgerError,
    LedgerGateway,
    LedgerRecordNotFoundError,
    MemoryLedgerGateway,
)
from epochi.ledger.recorder import (
    LedgerAuditRecorder,
    ProofVerification,
    build_transaction_record,
    create_intent_id,
)
from epochi.ledger.schemas import (
    ExecutionProofRecord,
    IntentStatus,
    ProofStatus,
    ReputationTier,
    ScheduledIntentRecord,
    SchemaKind,
    TransactionAuditRecord,
    TransactionStatus,
    UserStatsRecord,
    canonical_amount,
    create_verification_hash,
    format_time_delta,
    record_key,
    reputation_tier,
    success_rate,
    was_on_time,
)

__all__ = [
    "ExecutionProofRecord",
    "IntentStatus",
    "JsonlLedgerGateway",
    "LedgerAuditRecorder",
    "LedgerError",
    "LedgerGateway",
    "LedgerRecordNotFoundError",
    "MemoryLedgerGateway",
    "ProofStatus",
    "ProofVerification",
    "ReputationTier",
    "ScheduledIntentRecord",
    "SchemaKind",
    "TransactionAuditRecord",
    "TransactionStatus",
    "UserStatsRecord",
    "build_transaction_record",
    "canonical_amount",
    "create_intent_id",
    "create_verification_hash",
    "format_time_delta",
    "record_key",
    "reputation_tier",
    "success_rate",
    "was_on_time",
]
