"""Shared runtime bootstrap helpers for CLI entrypoints."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from epochi.calendar import (
    CalendarGateway,
    GoogleCalendarGateway,
    JsonCalendarGateway,
    MemoryCalendarGateway,
)
from epochi.config import EpochiConfig
from epochi.execution import TransactionExecutor
from epochi.ledger import (
    JsonlLedgerGateway,
    LedgerAuditRecorder,
    LedgerGateway,
    MemoryLedgerGateway,
)
from epochi.scheduling import TransactionScheduler
from epochi.wallet import (
    NamespaceWallet,
    NetworkGateway,
    RpcNetworkGateway,
    SimulatedNetworkGateway,
)


@dataclass(slots=True)
class RuntimeBootstrap:
    """Composed runtime dependencies for CLI command handlers."""

    calendar: CalendarGateway
    network: NetworkGateway
    wallet: NamespaceWallet
    recorder: LedgerAuditRecorder
    executor: TransactionExecutor
    scheduler: TransactionScheduler


def build_ledger(config: EpochiConfig) -> LedgerGateway:
    if config.ledger.backend == "memory":
        return MemoryLedgerGateway(publisher=config.ledger.publisher)
    return JsonlLedgerGateway(
        config.ledger.path.expanduser(), publisher=config.ledger.publisher
    )


def build_calendar(config: EpochiConfig) -> CalendarGateway:
    calendar_config = config.calendar
    match calendar_config.backend:
        case "memory":
            return MemoryCalendarGateway()
        case "json":
            return JsonCalendarGateway(calendar_config.path.expanduser())
        case "google":
            token = calendar_config.access_token
            return GoogleCalendarGateway(
                access_token=token.get_secret_value() if token else None,
                calendar_id=calendar_config.calendar_id,
                base_url=calendar_config.base_url,
            )


def build_network(config: EpochiConfig) -> NetworkGateway:
    network_config = config.network
    match network_config.backend:
        case "simulated":
            return SimulatedNetworkGateway(
                explorer_base_url=network_config.explorer_url
            )
        case "rpc":
            return RpcNetworkGateway(
                network_config.rpc_url,
                chain_id=network_config.chain_id,
                explorer_base_url=network_config.explorer_url,
                receipt_timeout=network_config.receipt_timeout,
            )


def build_wallet(config: EpochiConfig) -> NamespaceWallet:
    """Create the namespace wallet on the configured network.

    A simulated network is funded from ``network.balances`` first.

    Raises:
        ConfigError: If no wallet secret is configured.
    """
    network = build_network(config)
    wallet = NamespaceWallet(network, config.require_wallet_secret())
    if isinstance(network, SimulatedNetworkGateway):
        for namespace, amount in config.network.balances.items():
            network.fund(wallet.get_address(namespace), amount)
    return wallet


def bootstrap_runtime(config: EpochiConfig) -> RuntimeBootstrap:
    """Wire calendar, wallet, ledger, executor and scheduler from config."""
    wallet = build_wallet(config)
    recorder = LedgerAuditRecorder(build_ledger(config))
    executor = TransactionExecutor(wallet, recorder=recorder)
    calendar = build_calendar(config)

    scheduler_config = config.scheduler
    scheduler = TransactionScheduler(
        calendar,
        executor,
        recorder=recorder,
        namespace=scheduler_config.namespace,
        poll_interval=scheduler_config.poll_interval,
        lookahead=timedelta(hours=scheduler_config.lookahead_hours),
        max_retries=scheduler_config.max_retries,
        announce_intents=scheduler_config.announce_intents,
    )

    return RuntimeBootstrap(
        calendar=calendar,
        network=wallet.gateway,
        wallet=wallet,
        recorder=recorder,
        executor=executor,
        scheduler=scheduler,
    )
