"""Deterministic per-namespace wallets.

A namespace (usually a calendar id) is turned into private key material with
HMAC-SHA256 keyed by the wallet secret. The same secret and namespace always
yield the same address; nothing is stored.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import StrEnum

from epochi.wallet.network import NetworkGateway

logger = logging.getLogger(__name__)


class WalletError(ValueError):
    """Wallet configuration error (missing or malformed secret)."""


class SendErrorKind(StrEnum):
    INSUFFICIENT_BALANCE = "insufficient_balance"
    NETWORK = "network"


def derive_private_key(secret: str, namespace: str) -> bytes:
    """Derive 32 bytes of private key material for a namespace."""
    if not secret:
        raise WalletError("wallet secret must not be empty")
    return hmac.new(
        secret.encode("utf-8"), namespace.encode("utf-8"), hashlib.sha256
    ).digest()


@dataclass(frozen=True)
class NamespaceSigner:
    """Signing identity for one namespace."""

    namespace: str
    private_key: bytes = field(repr=False)
    address: str


@dataclass(frozen=True)
class SendResult:
    success: bool
    chain_tx_ref: str | None = None
    error: str | None = None
    error_kind: SendErrorKind | None = None


class NamespaceWallet:
    """Maps namespaces to signers and moves value through a network gateway.

    Signers are cached for the lifetime of the wallet. Failures are reported
    through SendResult; send() never raises and never retries.
    """

    def __init__(self, gateway: NetworkGateway, secret: str) -> None:
        if not secret:
            raise WalletError("wallet secret must not be empty")
        self._gateway = gateway
        self._secret = secret
        self._signers: dict[str, NamespaceSigner] = {}

    @property
    def gateway(self) -> NetworkGateway:
        return self._gateway

    def signer(self, namespace: str) -> NamespaceSigner:
        """Get the (cached) signer for a namespace."""
        cached = self._signers.get(namespace)
        if cached is not None:
            return cached

        private_key = derive_private_key(self._secret, namespace)
        signer = NamespaceSigner(
            namespace=namespace,
            private_key=private_key,
            address=self._gateway.derive_address(private_key),
        )
        self._signers[namespace] = signer
        logger.debug(
            "wallet_derived",
            extra={"wallet.namespace": namespace, "wallet.address": signer.address},
        )
        return signer

    def get_address(self, namespace: str) -> str:
        return self.signer(namespace).address

    async def get_balance(self, namespace: str) -> Decimal:
        return await self._gateway.get_balance(self.get_address(namespace))

    async def has_sufficient_balance(self, namespace: str, amount: Decimal) -> bool:
        """Check the namespace balance covers an amount.

        A failed balance lookup counts as insufficient.
        """
        try:
            balance = await self.get_balance(namespace)
        except Exception as e:
            logger.warning(
                "wallet_balance_lookup_failed",
                extra={"wallet.namespace": namespace, "error.message": str(e)},
            )
            return False
        return balance >= amount

    async def send(self, namespace: str, to: str, amount: Decimal) -> SendResult:
        """Send value from a namespace wallet and wait for confirmation."""
        if not await self.has_sufficient_balance(namespace, amount):
            return SendResult(
                success=False,
                error=f"Insufficient balance for {amount}",
                error_kind=SendErrorKind.INSUFFICIENT_BALANCE,
            )

        signer = self.signer(namespace)
        try:
            receipt = await self._gateway.send_value(signer, to, amount)
        except Exception as e:
            logger.warning(
                "wallet_send_failed",
                extra={
                    "wallet.namespace": namespace,
                    "wallet.to": to,
                    "error.message": str(e),
                },
            )
            return SendResult(
                success=False, error=str(e), error_kind=SendErrorKind.NETWORK
            )

        if not receipt.success:
            return SendResult(
                success=False,
                chain_tx_ref=receipt.tx_ref,
                error=receipt.error or "Transaction failed",
                error_kind=SendErrorKind.NETWORK,
            )

        logger.info(
            "wallet_sent",
            extra={
                "wallet.namespace": namespace,
                "wallet.to": to,
                "wallet.amount": str(amount),
                "wallet.tx_ref": receipt.tx_ref,
            },
        )
        return SendResult(success=True, chain_tx_ref=receipt.tx_ref)
