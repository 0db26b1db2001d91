"""Configuration models using Pydantic."""

import logging
from decimal import Decimal
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, SecretStr, field_validator

from epochi.config.paths import get_calendar_path, get_ledger_path

logger = logging.getLogger(__name__)

MIN_SECRET_LENGTH = 32


class ConfigError(Exception):
    """Configuration error."""

    pass


class SchedulerConfig(BaseModel):
    """Configuration for the calendar polling scheduler."""

    # Namespace the wallet is derived from (usually the calendar id)
    namespace: str = "primary"
    poll_interval: float = Field(default=30.0, gt=0)
    lookahead_hours: float = Field(default=24.0, gt=0)
    max_retries: int = Field(default=3, ge=1)
    # Pre-announce queued intents on the ledger
    announce_intents: bool = True


class WalletConfig(BaseModel):
    """Configuration for namespace wallet derivation.

    The secret keys the HMAC that turns a namespace into private key
    material. Changing it changes every derived address.
    """

    secret: SecretStr | None = None

    @field_validator("secret")
    @classmethod
    def _check_secret_length(cls, value: SecretStr | None) -> SecretStr | None:
        if value is not None and len(value.get_secret_value()) < MIN_SECRET_LENGTH:
            raise ValueError(
                f"wallet secret must be at least {MIN_SECRET_LENGTH} characters"
            )
        return value


class NetworkConfig(BaseModel):
    """Configuration for the value-transfer network.

    The simulated network credits ``balances`` (keyed by namespace) when it is
    built. The rpc backend talks to an EVM chain at ``rpc_url`` and ignores
    them.
    """

    backend: Literal["simulated", "rpc"] = "simulated"
    explorer_url: str = "https://shannon-explorer.somnia.network"
    balances: dict[str, Decimal] = Field(default_factory=dict)
    rpc_url: str = "https://dream-rpc.somnia.network"
    # Fetched with eth_chainId when unset
    chain_id: int | None = 50312
    receipt_timeout: float = Field(default=60.0, gt=0)


class LedgerConfig(BaseModel):
    """Configuration for the append-only ledger."""

    backend: Literal["memory", "jsonl"] = "jsonl"
    path: Path = Field(default_factory=get_ledger_path)
    # Identity records are appended under
    publisher: str = "epochi"


class CalendarConfig(BaseModel):
    """Configuration for the calendar source."""

    backend: Literal["memory", "json", "google"] = "json"
    path: Path = Field(default_factory=get_calendar_path)
    calendar_id: str = "primary"
    access_token: SecretStr | None = None
    base_url: str = "https://www.googleapis.com/calendar/v3"


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None
    to_file: bool = False
    retention_days: int = Field(default=7, ge=1)


class EpochiConfig(BaseModel):
    """Root configuration model."""

    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    wallet: WalletConfig = Field(default_factory=WalletConfig)
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    calendar: CalendarConfig = Field(default_factory=CalendarConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def require_wallet_secret(self) -> str:
        """Get the wallet secret.

        Raises:
            ConfigError: If no secret is configured.
        """
        if self.wallet.secret is None:
            raise ConfigError(
                "No wallet secret configured. Set wallet.secret or EPOCHI_WALLET_SECRET"
            )
        return self.wallet.secret.get_secret_value()
