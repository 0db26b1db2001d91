"""Swap execution strategies.

Only a simulated fill ships with Epochi. A real exchange integration plugs in
by implementing SwapStrategy.
"""

from __future__ import annotations

import hashlib
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import Protocol

from epochi.execution.types import ExecutionErrorKind
from epochi.intents.types import ParsedIntent
from epochi.wallet.namespace import NamespaceWallet

# Placeholder fill prices, in destination units per source unit
DEFAULT_RATES: dict[str, Decimal] = {"USDC": Decimal(2500)}


@dataclass(frozen=True)
class SwapFill:
    success: bool
    chain_tx_ref: str | None = None
    amount_received: Decimal | None = None
    error: str | None = None
    error_kind: ExecutionErrorKind | None = None


class SwapStrategy(Protocol):
    """Executes a swap intent for a namespace wallet."""

    async def swap(
        self, wallet: NamespaceWallet, intent: ParsedIntent, namespace: str
    ) -> SwapFill: ...


class SimulatedSwapStrategy:
    """Fills swaps at a fixed rate table without touching any exchange.

    The balance check is real; nothing is debited. The chain reference is a
    synthetic hash of the namespace, the source event and the fill time.
    """

    def __init__(
        self,
        rates: dict[str, Decimal] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._rates = dict(DEFAULT_RATES if rates is None else rates)
        self._clock = clock or (lambda: datetime.now(UTC))

    def rate_for(self, to_asset: str) -> Decimal:
        return self._rates.get(to_asset.upper(), Decimal(1))

    async def swap(
        self, wallet: NamespaceWallet, intent: ParsedIntent, namespace: str
    ) -> SwapFill:
        amount = Decimal(intent.amount)
        if not await wallet.has_sufficient_balance(namespace, amount):
            return SwapFill(
                success=False,
                error=f"Insufficient {intent.from_asset} balance for {amount}",
                error_kind=ExecutionErrorKind.INSUFFICIENT_BALANCE,
            )

        filled_at = int(self._clock().timestamp() * 1000)
        payload = f"{namespace}:{intent.source_event_id}:{filled_at}".encode()
        return SwapFill(
            success=True,
            chain_tx_ref="0x" + hashlib.sha256(payload).hexdigest(),
            amount_received=amount * self.rate_for(intent.destination),
        )
