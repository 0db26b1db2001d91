"""Configuration module."""

from epochi.config.loader import get_default_config, load_config
from epochi.config.models import (
    CalendarConfig,
    ConfigError,
    EpochiConfig,
    LedgerConfig,
    LoggingConfig,
    NetworkConfig,
    SchedulerConfig,
    WalletConfig,
)
from epochi.config.paths import (
    get_calendar_path,
    get_config_path,
    get_epochi_home,
    get_ledger_path,
    get_logs_path,
)

__all__ = [
    "CalendarConfig",
    "ConfigError",
    "EpochiConfig",
    "LedgerConfig",
    "LoggingConfig",
    "NetworkConfig",
    "SchedulerConfig",
    "WalletConfig",
    "get_calendar_path",
    "get_config_path",
    "get_default_config",
    "get_epochi_home",
    "get_ledger_path",
    "get_logs_path",
    "load_config",
]
