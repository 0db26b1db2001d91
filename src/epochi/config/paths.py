"""Centralized path management for Epochi.

All local state (config, logs, ledger files, calendar file) lives under a
single base directory. The base directory can be overridden with the
EPOCHI_HOME environment variable.

Default locations:
- Linux/macOS: ~/.epochi
- Windows: %USERPROFILE%\\.epochi
"""

import os
from functools import lru_cache
from pathlib import Path

ENV_VAR = "EPOCHI_HOME"


@lru_cache(maxsize=1)
def get_epochi_home() -> Path:
    """Get the base directory for all Epochi data.

    Resolution order:
    1. EPOCHI_HOME environment variable (if set)
    2. Platform default (~/.epochi)
    """
    if env_home := os.environ.get(ENV_VAR):
        return Path(env_home).expanduser().resolve()
    return Path.home() / ".epochi"


def get_config_path() -> Path:
    """Get the default config file path."""
    return get_epochi_home() / "config.toml"


def get_logs_path() -> Path:
    """Get the default logs directory path."""
    return get_epochi_home() / "logs"


def get_ledger_path() -> Path:
    """Get the directory holding the JSONL ledger files (one per schema)."""
    return get_epochi_home() / "ledger"


def get_calendar_path() -> Path:
    """Get the local JSON calendar file path."""
    return get_epochi_home() / "calendar.json"


def get_all_paths() -> dict[str, Path]:
    """Get all Epochi paths for display/debugging."""
    return {
        "home": get_epochi_home(),
        "config": get_config_path(),
        "logs": get_logs_path(),
        "ledger": get_ledger_path(),
        "calendar": get_calendar_path(),
    }
