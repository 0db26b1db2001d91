"""Parse command: check how an event title would be interpreted."""

from datetime import UTC, datetime
from typing import Annotated

import typer

from epochi.cli.console import console, create_table, error, success, warning


def register(app: typer.Typer) -> None:
    """Register the parse command."""

    @app.command()
    def parse(
        title: Annotated[str, typer.Argument(help="Calendar event title")],
        at: Annotated[
            str | None,
            typer.Option(
                "--at",
                help="Event start time (ISO 8601, default: now)",
            ),
        ] = None,
    ) -> None:
        """Parse an event title into a transaction intent.

        Examples:
            epochi parse "Swap 0.1 ETH to USDC"
            epochi parse "Send 1 STT to 0x1111111111111111111111111111111111111111"
        """
        from epochi.intents import format_intent, parse_title, validate_intent

        now = datetime.now(UTC)
        if at is None:
            start_time = now
        else:
            try:
                start_time = datetime.fromisoformat(at)
            except ValueError:
                error(f"Invalid --at time: {at}")
                raise typer.Exit(1) from None

        intent = parse_title(title, start_time, "cli")
        if not intent.valid:
            warning(f"Not a transaction: {intent.error}")
            raise typer.Exit(1)

        table = _intent_table(intent)
        console.print(table)

        if validate_intent(intent, now=now):
            success(f"Executable: {format_intent(intent)}")
        else:
            warning("Parsed, but would not be scheduled (stale or invalid amount)")
            raise typer.Exit(1)


def _intent_table(intent):
    table = create_table(
        "Parsed Intent",
        [("Field", {"style": "cyan"}), ("Value", {"style": "green"})],
    )
    table.add_row("Kind", intent.kind.value)
    table.add_row("Amount", intent.amount)
    table.add_row("From", intent.from_asset)
    if intent.to_address:
        table.add_row("To address", intent.to_address)
    else:
        table.add_row("To asset", intent.to_asset or "")
    table.add_row("Due", intent.due_at.isoformat())
    return table
