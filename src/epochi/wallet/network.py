"""Value-transfer network interface and the in-process simulated network."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from epochi.intents.parser import is_address

if TYPE_CHECKING:
    from epochi.wallet.namespace import NamespaceSigner

logger = logging.getLogger(__name__)


class NetworkError(Exception):
    """Network gateway failure (RPC error, rejected broadcast)."""


@dataclass(frozen=True)
class NetworkReceipt:
    """Outcome of a confirmed (or rejected) value transfer."""

    success: bool
    tx_ref: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class NetworkStatus:
    name: str
    chain_id: int | None = None
    block_number: int | None = None


@runtime_checkable
class NetworkGateway(Protocol):
    """Protocol for the network that holds balances and moves value."""

    def derive_address(self, private_key: bytes) -> str:
        """Derive the public address for a private key."""
        ...

    async def get_balance(self, address: str) -> Decimal:
        """Get the native balance of an address."""
        ...

    async def send_value(
        self, signer: NamespaceSigner, to: str, amount: Decimal
    ) -> NetworkReceipt:
        """Sign, broadcast and wait for confirmation of a transfer."""
        ...

    async def network_status(self) -> NetworkStatus:
        """Describe the connected network."""
        ...

    def explorer_url(self, tx_ref: str) -> str | None:
        """Get a block explorer link for a transaction reference."""
        ...


class SimulatedNetworkGateway:
    """In-process network with deterministic addresses and receipts.

    Balances live in memory and start at zero unless credited with fund().
    Receipts are derived from the sender, recipient, amount and a per-sender
    nonce, so a replayed run produces the same references.
    """

    def __init__(self, explorer_base_url: str | None = None) -> None:
        self._explorer_base_url = explorer_base_url
        self._balances: dict[str, Decimal] = {}
        self._nonces: dict[str, int] = {}

    def derive_address(self, private_key: bytes) -> str:
        digest = hashlib.sha256(private_key).digest()
        return "0x" + digest[-20:].hex()

    def fund(self, address: str, amount: Decimal) -> Decimal:
        """Credit an address and return its new balance."""
        key = address.lower()
        self._balances[key] = self._balances.get(key, Decimal(0)) + Decimal(amount)
        logger.debug(
            "network_funded",
            extra={"network.address": address, "network.amount": str(amount)},
        )
        return self._balances[key]

    async def get_balance(self, address: str) -> Decimal:
        return self._balances.get(address.lower(), Decimal(0))

    async def send_value(
        self, signer: NamespaceSigner, to: str, amount: Decimal
    ) -> NetworkReceipt:
        if not is_address(to):
            raise NetworkError(f"Invalid recipient address: {to}")

        sender = signer.address.lower()
        balance = self._balances.get(sender, Decimal(0))
        if amount <= 0:
            return NetworkReceipt(success=False, error="Amount must be positive")
        if balance < amount:
            return NetworkReceipt(
                success=False,
                error=f"insufficient funds: balance {balance}, required {amount}",
            )

        nonce = self._nonces.get(sender, 0)
        self._nonces[sender] = nonce + 1
        self._balances[sender] = balance - amount
        recipient = to.lower()
        self._balances[recipient] = self._balances.get(recipient, Decimal(0)) + amount

        payload = f"{sender}:{recipient}:{amount}:{nonce}".encode()
        tx_ref = "0x" + hashlib.sha256(payload).hexdigest()
        return NetworkReceipt(success=True, tx_ref=tx_ref)

    async def network_status(self) -> NetworkStatus:
        return NetworkStatus(name="simulated")

    def explorer_url(self, tx_ref: str) -> str | None:
        if not self._explorer_base_url:
            return None
        return f"{self._explorer_base_url.rstrip('/')}/tx/{tx_ref}"
