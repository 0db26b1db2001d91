"""Wallet inspection commands."""

import asyncio
from pathlib import Path
from typing import Annotated

import click
import typer

from epochi.cli.console import console, dim, error


def register(app: typer.Typer) -> None:
    """Register the wallet command."""

    @app.command()
    def wallet(
        action: Annotated[
            str | None,
            typer.Argument(help="Action: address, balance, network"),
        ] = None,
        namespace: Annotated[
            str | None,
            typer.Argument(help="Namespace (default: scheduler namespace)"),
        ] = None,
        config: Annotated[
            Path | None,
            typer.Option(
                "--config",
                "-c",
                help="Path to configuration file",
            ),
        ] = None,
    ) -> None:
        """Inspect namespace wallets.

        Examples:
            epochi wallet address              # Address of the default namespace
            epochi wallet balance my-calendar  # Balance of another namespace
            epochi wallet network              # Connected network and block height
        """
        if action is None:
            ctx = click.get_current_context()
            click.echo(ctx.get_help())
            raise typer.Exit(0)

        from epochi.cli.console import get_config
        from epochi.cli.runtime import build_wallet
        from epochi.config import ConfigError
        from epochi.wallet import NetworkError

        config_obj = get_config(config)
        namespace = namespace or config_obj.scheduler.namespace

        try:
            namespace_wallet = build_wallet(config_obj)
        except ConfigError as e:
            error(str(e))
            raise typer.Exit(1) from None

        if action == "address":
            console.print(namespace_wallet.get_address(namespace))

        elif action == "balance":
            try:
                balance = asyncio.run(namespace_wallet.get_balance(namespace))
            except NetworkError as e:
                error(str(e))
                raise typer.Exit(1) from None
            console.print(f"{balance}")
            dim(f"{namespace} -> {namespace_wallet.get_address(namespace)}")

        elif action == "network":
            try:
                status = asyncio.run(namespace_wallet.gateway.network_status())
            except NetworkError as e:
                error(str(e))
                raise typer.Exit(1) from None
            console.print(f"Network: {status.name}")
            if status.chain_id is not None:
                console.print(f"Chain id: {status.chain_id}")
            if status.block_number is not None:
                console.print(f"Block: {status.block_number}")

        else:
            error(f"Unknown action: {action}")
            console.print("Valid actions: address, balance, network")
            raise typer.Exit(1)
