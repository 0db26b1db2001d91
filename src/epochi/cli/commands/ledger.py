"""Ledger inspection commands."""

import asyncio
from pathlib import Path
from typing import Annotated

import click
import typer

from epochi.cli.console import console, create_table, dim, error, success, warning
from epochi.ledger import LedgerAuditRecorder, LedgerError


def register(app: typer.Typer) -> None:
    """Register the ledger command."""

    @app.command()
    def ledger(
        action: Annotated[
            str | None,
            typer.Argument(help="Action: transactions, intents, intent, stats, proof"),
        ] = None,
        key: Annotated[
            str | None,
            typer.Argument(help="Intent id, owner address or proof id"),
        ] = None,
        owner: Annotated[
            str | None,
            typer.Option(
                "--owner",
                help="Only show transactions for this owner address",
            ),
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
        """Inspect records on the audit ledger.

        Examples:
            epochi ledger transactions           # All audit records
            epochi ledger intent intent-0x12...  # Current state of an intent
            epochi ledger stats 0xabc...         # Reputation for an address
            epochi ledger proof proof-...        # Verify an execution proof
        """
        if action is None:
            ctx = click.get_current_context()
            click.echo(ctx.get_help())
            raise typer.Exit(0)

        from epochi.cli.console import get_config
        from epochi.cli.runtime import build_ledger

        recorder = LedgerAuditRecorder(build_ledger(get_config(config)))

        handlers = {
            "transactions": lambda: _list_transactions(recorder, owner),
            "intents": lambda: _list_intents(recorder),
            "intent": lambda: _show_intent(recorder, _require(key, action)),
            "stats": lambda: _show_stats(recorder, _require(key, action)),
            "proof": lambda: _show_proof(recorder, _require(key, action)),
        }
        handler = handlers.get(action)
        if handler is None:
            error(f"Unknown action: {action}")
            console.print("Valid actions: " + ", ".join(handlers))
            raise typer.Exit(1)

        try:
            asyncio.run(handler())
        except LedgerError as e:
            error(str(e))
            raise typer.Exit(1) from None


def _require(key: str | None, action: str) -> str:
    if not key:
        error(f"A key is required for '{action}'")
        raise typer.Exit(1)
    return key


async def _list_transactions(recorder: LedgerAuditRecorder, owner: str | None) -> None:
    records = await recorder.list_transactions(owner_address=owner)
    if not records:
        warning("No transactions recorded")
        return

    table = create_table(
        "Transactions",
        [
            ("Time", {"style": "dim"}),
            ("Event", {"style": "dim", "max_width": 16}),
            ("Kind", {"style": "cyan"}),
            ("Amount", {"style": "white"}),
            ("Received", {"style": "white"}),
            ("Status", {}),
            ("Tx", {"style": "dim", "max_width": 18}),
        ],
    )
    for record in records:
        status_style = "green" if record.status == "executed" else "red"
        table.add_row(
            record.timestamp.strftime("%Y-%m-%d %H:%M"),
            record.source_event_id,
            record.kind.value,
            f"{record.amount} {record.from_asset}",
            f"{record.amount_received} {record.to_asset}"
            if record.amount_received is not None
            else "-",
            f"[{status_style}]{record.status.value}[/{status_style}]",
            record.chain_tx_ref or "-",
        )
    console.print(table)
    dim(f"\nTotal: {len(records)} records")


async def _list_intents(recorder: LedgerAuditRecorder) -> None:
    intents = await recorder.list_intents()
    if not intents:
        warning("No intents announced")
        return

    table = create_table(
        "Intents",
        [
            ("Intent", {"style": "dim"}),
            ("Scheduled", {"style": "green"}),
            ("Transaction", {"style": "white"}),
            ("Status", {"style": "cyan"}),
        ],
    )
    for record in intents:
        table.add_row(
            record.intent_id,
            record.scheduled_time.strftime("%Y-%m-%d %H:%M UTC"),
            f"{record.amount} {record.from_asset} -> {record.to_asset}",
            record.status.value,
        )
    console.print(table)


async def _show_intent(recorder: LedgerAuditRecorder, intent_id: str) -> None:
    record = await recorder.get_intent(intent_id)
    if record is None:
        error(f"Intent not found: {intent_id}")
        raise typer.Exit(1)
    console.print_json(record.model_dump_json())


async def _show_stats(recorder: LedgerAuditRecorder, owner_address: str) -> None:
    from epochi.ledger import reputation_tier, success_rate

    stats = await recorder.get_user_stats(owner_address)
    if stats is None:
        warning(f"No activity recorded for {owner_address}")
        return

    table = create_table(
        f"Stats for {owner_address}",
        [("Metric", {"style": "cyan"}), ("Value", {"style": "green"})],
    )
    table.add_row("Transactions", str(stats.total_tx))
    table.add_row("Succeeded", str(stats.success_tx))
    table.add_row("Failed", str(stats.failed_tx))
    table.add_row("Success rate", f"{success_rate(stats):.1f}%")
    table.add_row("Volume", str(stats.total_volume))
    table.add_row(
        "Most used", stats.most_used_kind.value if stats.most_used_kind else "-"
    )
    table.add_row("Tier", reputation_tier(stats).value)
    table.add_row("Last activity", stats.last_activity_at.isoformat())
    console.print(table)


async def _show_proof(recorder: LedgerAuditRecorder, proof_id: str) -> None:
    from epochi.ledger import format_time_delta

    verification = await recorder.verify_execution_proof(proof_id)
    if verification.proof is None:
        error(f"Proof not found: {proof_id}")
        raise typer.Exit(1)

    console.print_json(verification.proof.model_dump_json())
    delta = format_time_delta(verification.time_delta)
    if not verification.valid:
        error("Verification hash mismatch: record was modified")
        raise typer.Exit(1)
    if verification.on_time:
        success(f"Valid proof, executed on time ({delta})")
    else:
        warning(f"Valid proof, executed late ({delta})")
