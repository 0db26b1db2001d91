"""CLI command modules."""

from epochi.cli.commands import config, ledger, parse, pending, serve, wallet

__all__ = [
    "config",
    "ledger",
    "parse",
    "pending",
    "serve",
    "wallet",
]
