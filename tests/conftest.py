"""Shared test fixtures and factories."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from pathlib import Path

import pytest

from epochi.calendar import CalendarEvent, MemoryCalendarGateway
from epochi.config.paths import ENV_VAR, get_epochi_home
from epochi.execution import TransactionExecutor
from epochi.ledger import LedgerAuditRecorder, MemoryLedgerGateway
from epochi.scheduling import TransactionScheduler
from epochi.wallet import NamespaceWallet, SimulatedNetworkGateway

WALLET_SECRET = "test-wallet-secret-0123456789abcdef"
NAMESPACE = "primary"
RECIPIENT = "0x" + "1" * 40
START = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)
EXPLORER = "https://explorer.test"


class FakeClock:
    """Manually advanced clock, injectable wherever a ``clock`` is accepted."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, **kwargs: float) -> datetime:
        self.now += timedelta(seconds=seconds, **kwargs)
        return self.now


# =============================================================================
# Environment Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_epochi_home(tmp_path: Path, monkeypatch):
    """Point EPOCHI_HOME at a temp dir and clear secret env vars."""
    home = tmp_path / "epochi-home"
    monkeypatch.setenv(ENV_VAR, str(home))
    for var in (
        "EPOCHI_WALLET_SECRET",
        "EPOCHI_GOOGLE_ACCESS_TOKEN",
        "EPOCHI_LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)
    get_epochi_home.cache_clear()
    yield home
    get_epochi_home.cache_clear()


# =============================================================================
# Core Component Fixtures
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def network() -> SimulatedNetworkGateway:
    return SimulatedNetworkGateway(explorer_base_url=EXPLORER)


@pytest.fixture
def wallet(network: SimulatedNetworkGateway) -> NamespaceWallet:
    return NamespaceWallet(network, WALLET_SECRET)


@pytest.fixture
def fund(network: SimulatedNetworkGateway, wallet: NamespaceWallet):
    """Credit a namespace wallet on the simulated network."""

    def _fund(amount: str | Decimal, namespace: str = NAMESPACE) -> str:
        address = wallet.get_address(namespace)
        network.fund(address, Decimal(amount))
        return address

    return _fund


@pytest.fixture
def ledger() -> MemoryLedgerGateway:
    return MemoryLedgerGateway(publisher="epochi-test")


@pytest.fixture
def recorder(ledger: MemoryLedgerGateway, clock: FakeClock) -> LedgerAuditRecorder:
    return LedgerAuditRecorder(ledger, clock=clock)


@pytest.fixture
def executor(
    wallet: NamespaceWallet, recorder: LedgerAuditRecorder, clock: FakeClock
) -> TransactionExecutor:
    return TransactionExecutor(wallet, recorder=recorder, clock=clock)


@pytest.fixture
def calendar() -> MemoryCalendarGateway:
    return MemoryCalendarGateway()


@pytest.fixture
def scheduler(
    calendar: MemoryCalendarGateway,
    executor: TransactionExecutor,
    recorder: LedgerAuditRecorder,
    clock: FakeClock,
) -> TransactionScheduler:
    return TransactionScheduler(
        calendar,
        executor,
        recorder=recorder,
        namespace=NAMESPACE,
        poll_interval=3600,
        clock=clock,
    )


@pytest.fixture
def make_event():
    """Factory for calendar events relative to START."""

    def _make(
        title: str,
        event_id: str = "evt-1",
        in_seconds: float = 60,
        description: str = "",
    ) -> CalendarEvent:
        return CalendarEvent(
            id=event_id,
            title=title,
            start_time=START + timedelta(seconds=in_seconds),
            description=description,
        )

    return _make


# =============================================================================
# CLI Fixtures
# =============================================================================


@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner with colors disabled."""
    from typer.testing import CliRunner

    return CliRunner(env={"NO_COLOR": "1"})


@pytest.fixture
def config_toml_content(tmp_path: Path) -> str:
    """Valid TOML config content using local backends."""
    return f"""
[scheduler]
namespace = "primary"
poll_interval = 15

[wallet]
secret = "{WALLET_SECRET}"

[network]
balances = {{ primary = "10" }}

[ledger]
backend = "jsonl"
path = "{tmp_path / 'ledger'}"

[calendar]
backend = "json"
path = "{tmp_path / 'calendar.json'}"
"""


@pytest.fixture
def config_file(tmp_path: Path, config_toml_content: str) -> Path:
    """Create a temporary config file."""
    config_path = tmp_path / "config.toml"
    config_path.write_text(config_toml_content)
    return config_path
