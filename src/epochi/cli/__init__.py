"""Command-line interface."""

from epochi.cli.app import app

__all__ = ["app"]
