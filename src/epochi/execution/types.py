"""Execution result types."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum


class ExecutionErrorKind(StrEnum):
    NOT_DUE = "not_due"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    NETWORK = "network"
    UNSUPPORTED = "unsupported"


@dataclass
class ExecutionResult:
    """Outcome of one execution attempt.

    ``not_due`` results are not failures; the caller should try again once
    the intent is due.
    """

    success: bool
    chain_tx_ref: str | None = None
    amount_received: Decimal | None = None
    error: str | None = None
    error_kind: ExecutionErrorKind | None = None
    audit_ref: str | None = None
    explorer_url: str | None = None

    @property
    def is_not_due(self) -> bool:
        return self.error_kind == ExecutionErrorKind.NOT_DUE

    @classmethod
    def failure(cls, error: str, kind: ExecutionErrorKind) -> ExecutionResult:
        return cls(success=False, error=error, error_kind=kind)
