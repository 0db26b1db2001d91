"""EVM JSON-RPC network gateway.

Accounts are derived from the namespace key with eth-account, transactions
are signed locally and broadcast as raw transactions, so the private key
never leaves the process.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import httpx
from eth_account import Account
from eth_utils import to_checksum_address

from epochi.intents.parser import is_address
from epochi.wallet.network import NetworkError, NetworkReceipt, NetworkStatus

if TYPE_CHECKING:
    from epochi.wallet.namespace import NamespaceSigner

logger = logging.getLogger(__name__)

DEFAULT_RPC_URL = "https://dream-rpc.somnia.network"
DEFAULT_CHAIN_ID = 50312
WEI_PER_UNIT = Decimal(10) ** 18
# Used when eth_estimateGas fails
FALLBACK_GAS_LIMIT = 100_000
REQUEST_TIMEOUT = 30.0


def to_wei(amount: Decimal) -> int:
    return int((Decimal(amount) * WEI_PER_UNIT).to_integral_value())


def from_wei(value: int) -> Decimal:
    return Decimal(value) / WEI_PER_UNIT


class RpcNetworkGateway:
    """Moves native value on an EVM chain through its JSON-RPC endpoint.

    send_value() checks the balance covers value plus gas, signs a legacy
    transaction, broadcasts it and polls for the receipt until
    ``receipt_timeout`` elapses.
    """

    def __init__(
        self,
        rpc_url: str = DEFAULT_RPC_URL,
        *,
        chain_id: int | None = DEFAULT_CHAIN_ID,
        explorer_base_url: str | None = None,
        receipt_timeout: float = 60.0,
        receipt_poll_interval: float = 1.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._rpc_url = rpc_url
        self._chain_id = chain_id
        self._explorer_base_url = explorer_base_url
        self._receipt_timeout = receipt_timeout
        self._receipt_poll_interval = receipt_poll_interval
        self._client = client
        self._ids = itertools.count(1)

    def derive_address(self, private_key: bytes) -> str:
        return Account.from_key(private_key).address

    async def get_balance(self, address: str) -> Decimal:
        result = await self._call("eth_getBalance", [address, "latest"])
        return from_wei(int(result, 16))

    async def get_chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = int(await self._call("eth_chainId", []), 16)
        return self._chain_id

    async def estimate_gas(self, sender: str, to: str, value: int) -> int:
        """Estimate gas for a plain transfer, falling back to a fixed limit."""
        try:
            result = await self._call(
                "eth_estimateGas", [{"from": sender, "to": to, "value": hex(value)}]
            )
        except NetworkError as e:
            logger.warning(
                "gas_estimate_failed",
                extra={"network.to": to, "error.message": str(e)},
            )
            return FALLBACK_GAS_LIMIT
        return int(result, 16)

    async def send_value(
        self, signer: NamespaceSigner, to: str, amount: Decimal
    ) -> NetworkReceipt:
        if not is_address(to):
            raise NetworkError(f"Invalid recipient address: {to}")
        if amount <= 0:
            return NetworkReceipt(success=False, error="Amount must be positive")

        value = to_wei(amount)
        sender = signer.address
        chain_id = await self.get_chain_id()
        gas_price = int(await self._call("eth_gasPrice", []), 16)
        gas = await self.estimate_gas(sender, to, value)
        nonce = int(await self._call("eth_getTransactionCount", [sender, "pending"]), 16)

        balance = int(await self._call("eth_getBalance", [sender, "latest"]), 16)
        if balance < value + gas * gas_price:
            return NetworkReceipt(
                success=False,
                error=(
                    f"insufficient funds: balance {from_wei(balance)}, "
                    f"required {from_wei(value + gas * gas_price)} including gas"
                ),
            )

        signed = Account.sign_transaction(
            {
                "nonce": nonce,
                "gasPrice": gas_price,
                "gas": gas,
                "to": to_checksum_address(to),
                "value": value,
                "data": b"",
                "chainId": chain_id,
            },
            signer.private_key,
        )
        tx_ref = await self._call(
            "eth_sendRawTransaction", ["0x" + bytes(signed.raw_transaction).hex()]
        )
        logger.info(
            "transaction_broadcast",
            extra={
                "network.from": sender,
                "network.to": to,
                "network.amount": str(amount),
                "network.tx_ref": tx_ref,
                "network.nonce": nonce,
            },
        )

        receipt = await self._wait_for_receipt(tx_ref)
        if int(receipt.get("status", "0x0"), 16) != 1:
            return NetworkReceipt(
                success=False, tx_ref=tx_ref, error="Transaction reverted"
            )

        logger.info(
            "transaction_confirmed",
            extra={
                "network.tx_ref": tx_ref,
                "network.block": int(receipt.get("blockNumber") or "0x0", 16),
            },
        )
        return NetworkReceipt(success=True, tx_ref=tx_ref)

    async def network_status(self) -> NetworkStatus:
        block_number = int(await self._call("eth_blockNumber", []), 16)
        return NetworkStatus(
            name="rpc",
            chain_id=await self.get_chain_id(),
            block_number=block_number,
        )

    def explorer_url(self, tx_ref: str) -> str | None:
        if not self._explorer_base_url:
            return None
        return f"{self._explorer_base_url.rstrip('/')}/tx/{tx_ref}"

    async def _wait_for_receipt(self, tx_ref: str) -> dict[str, Any]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._receipt_timeout
        while True:
            receipt = await self._call("eth_getTransactionReceipt", [tx_ref])
            if receipt:
                return receipt
            if loop.time() >= deadline:
                raise NetworkError(
                    f"Transaction {tx_ref} not confirmed within "
                    f"{self._receipt_timeout:g}s"
                )
            await asyncio.sleep(self._receipt_poll_interval)

    async def _call(self, method: str, params: list[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        try:
            if self._client is not None:
                response = await self._client.post(self._rpc_url, json=payload)
            else:
                async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
                    response = await client.post(self._rpc_url, json=payload)
        except httpx.HTTPError as e:
            raise NetworkError(f"RPC request failed: {e}") from e

        if response.status_code >= 400:
            logger.error("RPC request failed: %d %s", response.status_code, response.text)
            raise NetworkError(f"RPC request failed: {response.status_code}")

        data = response.json()
        if data.get("error"):
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise NetworkError(f"{method} failed: {message}")
        return data.get("result")
