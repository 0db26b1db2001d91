"""Pending command: list upcoming transactions in the calendar."""

import asyncio
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Annotated

import typer

from epochi.cli.console import console, dim, error, warning


def _format_countdown(due_at: datetime, now: datetime) -> str:
    """Format a countdown string for a due time."""
    if due_at <= now:
        return "[green]now[/green]"

    total_seconds = int((due_at - now).total_seconds())
    if total_seconds < 60:
        return f"in {total_seconds}s"

    total_minutes = total_seconds // 60
    if total_minutes < 60:
        return f"in {total_minutes}m"

    hours = total_minutes // 60
    minutes = total_minutes % 60
    if minutes:
        return f"in {hours}h {minutes}m"
    return f"in {hours}h"


def register(app: typer.Typer) -> None:
    """Register the pending command."""

    @app.command()
    def pending(
        config: Annotated[
            Path | None,
            typer.Option(
                "--config",
                "-c",
                help="Path to configuration file",
            ),
        ] = None,
    ) -> None:
        """List upcoming calendar events that declare a transaction."""
        from epochi.calendar import CalendarError, CalendarNotAuthenticatedError
        from epochi.cli.console import get_config
        from epochi.cli.runtime import build_calendar

        config_obj = get_config(config)
        calendar = build_calendar(config_obj)
        lookahead = timedelta(hours=config_obj.scheduler.lookahead_hours)

        try:
            rows = asyncio.run(_collect_pending(calendar, lookahead))
        except CalendarNotAuthenticatedError as e:
            error(f"Calendar not authenticated: {e}")
            raise typer.Exit(1) from None
        except CalendarError as e:
            error(str(e))
            raise typer.Exit(1) from None

        if not rows:
            warning("No pending transactions found")
            return

        from epochi.cli.console import create_table

        table = create_table(
            "Pending Transactions",
            [
                ("Event", {"style": "dim", "max_width": 16}),
                ("Transaction", {"style": "white"}),
                ("Due", {"style": "green"}),
                ("Countdown", {"style": "cyan"}),
            ],
        )
        now = datetime.now(UTC)
        for event_id, summary, due_at in rows:
            table.add_row(
                event_id,
                summary,
                due_at.strftime("%Y-%m-%d %H:%M UTC"),
                _format_countdown(due_at, now),
            )
        console.print(table)
        dim(f"\nTotal: {len(rows)} pending")


async def _collect_pending(calendar, lookahead: timedelta):
    from epochi.calendar import EXECUTED_MARKER, CalendarNotAuthenticatedError
    from epochi.intents import format_intent, parse_event, validate_intent

    if not await calendar.is_authenticated():
        raise CalendarNotAuthenticatedError("no credentials or calendar file")

    now = datetime.now(UTC)
    events = await calendar.events_between(now, now + lookahead)
    rows = []
    for event in events:
        if EXECUTED_MARKER in event.description:
            continue
        intent = parse_event(event)
        if validate_intent(intent, now=now):
            rows.append((event.id, format_intent(intent), intent.due_at))
    return rows
