"""Transaction executor: one parsed intent in, one ExecutionResult out."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from decimal import Decimal

from epochi.execution.strategies import SimulatedSwapStrategy, SwapStrategy
from epochi.execution.types import ExecutionErrorKind, ExecutionResult
from epochi.intents.parser import format_intent
from epochi.intents.types import IntentKind, ParsedIntent
from epochi.ledger.recorder import LedgerAuditRecorder, build_transaction_record
from epochi.ledger.schemas import TransactionStatus
from epochi.wallet.namespace import NamespaceWallet

logger = logging.getLogger(__name__)


class TransactionExecutor:
    """Dispatches intents to the swap strategy or the wallet.

    Every swap or transfer attempt, successful or not, is followed by an
    audit record. The audit append never changes the execution outcome.
    """

    def __init__(
        self,
        wallet: NamespaceWallet,
        recorder: LedgerAuditRecorder | None = None,
        swap_strategy: SwapStrategy | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._wallet = wallet
        self._recorder = recorder
        self._clock = clock or (lambda: datetime.now(UTC))
        self._swap_strategy = swap_strategy or SimulatedSwapStrategy(clock=self._clock)

    @property
    def wallet(self) -> NamespaceWallet:
        return self._wallet

    async def execute(self, intent: ParsedIntent, namespace: str) -> ExecutionResult:
        """Execute an intent from a namespace wallet.

        Intents that are not yet due are refused with a ``not_due`` result and
        leave no trace on the ledger.
        """
        if intent.due_at > self._clock():
            return ExecutionResult.failure(
                "Transaction not due yet", ExecutionErrorKind.NOT_DUE
            )

        try:
            match intent.kind:
                case IntentKind.SWAP:
                    result = await self._execute_swap(intent, namespace)
                case IntentKind.TRANSFER:
                    result = await self._execute_transfer(intent, namespace)
                case IntentKind.UNKNOWN:
                    return ExecutionResult.failure(
                        "Unsupported transaction type", ExecutionErrorKind.UNSUPPORTED
                    )
        except Exception as e:
            logger.exception(
                "execution_crashed",
                extra={"intent.event_id": intent.source_event_id},
            )
            result = ExecutionResult.failure(str(e), ExecutionErrorKind.NETWORK)

        result.audit_ref = await self._record_audit(intent, namespace, result)

        log_extra = {
            "intent.event_id": intent.source_event_id,
            "intent.summary": format_intent(intent),
            "execution.namespace": namespace,
            "execution.tx_ref": result.chain_tx_ref,
        }
        if result.success:
            logger.info("execution_succeeded", extra=log_extra)
        else:
            logger.info(
                "execution_failed",
                extra={
                    **log_extra,
                    "error.kind": result.error_kind,
                    "error.message": result.error,
                },
            )
        return result

    async def _execute_swap(self, intent: ParsedIntent, namespace: str) -> ExecutionResult:
        fill = await self._swap_strategy.swap(self._wallet, intent, namespace)
        return ExecutionResult(
            success=fill.success,
            chain_tx_ref=fill.chain_tx_ref,
            amount_received=fill.amount_received,
            error=fill.error,
            error_kind=fill.error_kind,
        )

    async def _execute_transfer(
        self, intent: ParsedIntent, namespace: str
    ) -> ExecutionResult:
        amount = Decimal(intent.amount)
        sent = await self._wallet.send(namespace, intent.destination, amount)
        if not sent.success:
            return ExecutionResult(
                success=False,
                chain_tx_ref=sent.chain_tx_ref,
                error=sent.error,
                error_kind=ExecutionErrorKind(sent.error_kind or "network"),
            )

        explorer_url = None
        if sent.chain_tx_ref:
            explorer_url = self._wallet.gateway.explorer_url(sent.chain_tx_ref)
        return ExecutionResult(
            success=True,
            chain_tx_ref=sent.chain_tx_ref,
            amount_received=amount,
            explorer_url=explorer_url,
        )

    async def _record_audit(
        self, intent: ParsedIntent, namespace: str, result: ExecutionResult
    ) -> str | None:
        if self._recorder is None:
            return None

        if result.success:
            notes = "Simulated swap fill" if intent.kind == IntentKind.SWAP else ""
        else:
            notes = result.error or ""

        try:
            record = build_transaction_record(
                intent,
                namespace=namespace,
                owner_address=self._wallet.get_address(namespace),
                status=(
                    TransactionStatus.EXECUTED
                    if result.success
                    else TransactionStatus.FAILED
                ),
                amount_received=result.amount_received,
                chain_tx_ref=result.chain_tx_ref,
                notes=notes,
                timestamp=self._clock(),
            )
            return await self._recorder.record_transaction(record)
        except Exception:
            logger.warning(
                "audit_record_failed",
                extra={"intent.event_id": intent.source_event_id},
                exc_info=True,
            )
            return None
