"""Namespace wallets and the value-transfer network."""

from epochi.wallet.namespace import (
    NamespaceSigner,
    NamespaceWallet,
    SendErrorKind,
    SendResult,
    WalletError,
    derive_private_key,
)
from epochi.wallet.network import (
    NetworkError,
    NetworkGateway,
    NetworkReceipt,
    NetworkStatus,
    SimulatedNetworkGateway,
)
from epochi.wallet.rpc import RpcNetworkGateway

__all__ = [
    "NamespaceSigner",
    "NamespaceWallet",
    "NetworkError",
    "NetworkGateway",
    "NetworkReceipt",
    "NetworkStatus",
    "RpcNetworkGateway",
    "SendErrorKind",
    "SendResult",
    "SimulatedNetworkGateway",
    "WalletError",
    "derive_private_key",
]
