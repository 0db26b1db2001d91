"""Text the scheduler appends to calendar events."""

from __future__ import annotations

from datetime import datetime

from epochi.execution.types import ExecutionResult
from epochi.intents.types import IntentKind, ParsedIntent

# An event whose description contains this has already run
EXECUTED_MARKER = "✅ Transaction Executed"
FAILED_MARKER = "❌ Transaction Failed (Max retries exceeded)"

_RULE = "-" * 20


def format_executed_note(
    intent: ParsedIntent, result: ExecutionResult, executed_at: datetime
) -> str:
    received_asset = (
        intent.destination if intent.kind == IntentKind.SWAP else intent.from_asset
    )
    lines = [
        f"{EXECUTED_MARKER}!",
        _RULE,
        f"Transaction: {result.explorer_url or result.chain_tx_ref}",
        f"Received: {result.amount_received} {received_asset}",
    ]
    if result.audit_ref:
        lines.append(f"Ledger record: {result.audit_ref}")
    lines.append(f"Executed: {executed_at.isoformat()}")
    return "\n".join(lines)


def format_failed_note(error: str | None, attempts: int, last_attempt_at: datetime) -> str:
    return "\n".join(
        [
            FAILED_MARKER,
            _RULE,
            f"Error: {error or 'unknown error'}",
            f"Attempts: {attempts}",
            f"Last attempt: {last_attempt_at.isoformat()}",
        ]
    )
