"""Shared console utilities for CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from epochi.config.models import EpochiConfig

# Shared console instance for all CLI commands
console = Console()


def error(msg: str) -> None:
    """Print an error message in red."""
    console.print(f"[red]{msg}[/red]")


def warning(msg: str) -> None:
    """Print a warning message in yellow."""
    console.print(f"[yellow]{msg}[/yellow]")


def success(msg: str) -> None:
    """Print a success message in green."""
    console.print(f"[green]{msg}[/green]")


def dim(msg: str) -> None:
    """Print a dimmed message."""
    console.print(f"[dim]{msg}[/dim]")


def create_table(
    title: str,
    columns: list[tuple[str, dict]],
) -> Table:
    """Create a Rich table with specified columns.

    Args:
        title: Table title.
        columns: List of (name, kwargs) tuples for add_column.

    Returns:
        Configured Table instance.
    """
    table = Table(title=title)
    for name, kwargs in columns:
        table.add_column(name, **kwargs)
    return table


def get_config(config_path: Path | None = None) -> EpochiConfig:
    """Load configuration, exiting on error.

    With no explicit path, a missing config file falls back to defaults so
    read-only commands still work.
    """
    from pydantic import ValidationError

    from epochi.config import get_default_config, load_config

    try:
        return load_config(config_path)
    except FileNotFoundError as e:
        if config_path is not None:
            error(str(e))
            raise typer.Exit(1) from None
        return get_default_config()
    except (ValidationError, ValueError) as e:
        error(f"Invalid configuration: {e}")
        raise typer.Exit(1) from None
