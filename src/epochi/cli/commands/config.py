"""Configuration management commands."""

from pathlib import Path
from typing import Annotated

import click
import typer

from epochi.cli.console import console, error, success


def register(app: typer.Typer) -> None:
    """Register the config command."""

    @app.command()
    def config(
        action: Annotated[
            str | None,
            typer.Argument(help="Action: show, validate, paths"),
        ] = None,
        path: Annotated[
            Path | None,
            typer.Option(
                "--path",
                "-p",
                help="Path to config file (default: $EPOCHI_HOME/config.toml)",
            ),
        ] = None,
    ) -> None:
        """Manage configuration."""
        if action is None:
            ctx = click.get_current_context()
            click.echo(ctx.get_help())
            raise typer.Exit(0)

        from pydantic import ValidationError
        from rich.syntax import Syntax
        from rich.table import Table

        from epochi.config import load_config
        from epochi.config.paths import get_all_paths, get_config_path

        expanded_path = path.expanduser() if path else get_config_path()

        if action == "show":
            if not expanded_path.exists():
                error(f"Config file not found: {expanded_path}")
                raise typer.Exit(1)

            # Display raw TOML with syntax highlighting
            content = expanded_path.read_text()
            syntax = Syntax(content, "toml", theme="monokai", line_numbers=True)
            console.print(f"[bold]Config file: {expanded_path}[/bold]\n")
            console.print(syntax)

        elif action == "validate":
            if not expanded_path.exists():
                error(f"Config file not found: {expanded_path}")
                raise typer.Exit(1)

            try:
                config_obj = load_config(expanded_path)
            except ValidationError as e:
                error("Configuration validation failed:")
                console.print()
                for err in e.errors():
                    loc = ".".join(str(x) for x in err["loc"])
                    console.print(f"  [yellow]{loc}[/yellow]: {err['msg']}")
                raise typer.Exit(1) from None
            except Exception as e:
                error(f"Error loading config: {e}")
                raise typer.Exit(1) from None

            table = Table(title="Configuration Summary")
            table.add_column("Setting", style="cyan")
            table.add_column("Value", style="green")

            scheduler = config_obj.scheduler
            table.add_row("Namespace", scheduler.namespace)
            table.add_row(
                "Polling",
                f"every {scheduler.poll_interval:g}s, "
                f"{scheduler.lookahead_hours:g}h ahead, "
                f"{scheduler.max_retries} attempts",
            )
            table.add_row(
                "Wallet secret",
                "configured"
                if config_obj.wallet.secret
                else "[yellow]missing[/yellow]",
            )
            table.add_row("Calendar", config_obj.calendar.backend)
            if config_obj.calendar.backend == "google":
                table.add_row(
                    "Access token",
                    "configured"
                    if config_obj.calendar.access_token
                    else "[yellow]missing[/yellow]",
                )
            table.add_row(
                "Ledger", f"{config_obj.ledger.backend} ({config_obj.ledger.path})"
            )

            success("Configuration is valid!")
            console.print()
            console.print(table)

        elif action == "paths":
            for name, value in get_all_paths().items():
                console.print(f"[cyan]{name:>9}[/cyan]  {value}")

        else:
            error(f"Unknown action: {action}")
            console.print("Valid actions: show, validate, paths")
            raise typer.Exit(1)
