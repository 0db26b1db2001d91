"""Serve command: run the transaction scheduler."""

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import typer

logger = logging.getLogger(__name__)


def register(app: typer.Typer) -> None:
    """Register the serve command."""

    @app.command()
    def serve(
        config: Annotated[
            Path | None,
            typer.Option(
                "--config",
                "-c",
                help="Path to configuration file",
            ),
        ] = None,
        once: Annotated[
            bool,
            typer.Option(
                "--once",
                help="Run a single scheduler tick and exit",
            ),
        ] = False,
    ) -> None:
        """Watch the calendar and execute scheduled transactions."""
        try:
            exit_code = asyncio.run(_run_scheduler(config, once))
        except KeyboardInterrupt:
            # Use print here since logging may not be configured yet
            print("\nScheduler stopped")
            return
        if exit_code:
            raise typer.Exit(exit_code)


async def _run_scheduler(config_path: Path | None = None, once: bool = False) -> int:
    """Run the scheduler until a signal arrives (or for one tick)."""
    import signal as signal_module

    from epochi.calendar import CalendarNotAuthenticatedError
    from epochi.cli.console import console, error, get_config
    from epochi.cli.runtime import bootstrap_runtime
    from epochi.config import ConfigError
    from epochi.logging import configure_logging

    config = get_config(config_path)
    configure_logging(
        level=config.logging.level,
        use_rich=True,
        log_to_file=config.logging.to_file,
        retention_days=config.logging.retention_days,
    )

    try:
        runtime = bootstrap_runtime(config)
    except ConfigError as e:
        error(str(e))
        return 1

    scheduler = runtime.scheduler

    if once:
        if not await runtime.calendar.is_authenticated():
            error("Calendar not authenticated")
            return 1
        await scheduler.tick()
        stats = scheduler.status()
        console.print(
            f"Checked calendar: {stats.detected} detected, "
            f"{stats.executed} executed, {stats.failed} failed, "
            f"{stats.queue_size} still queued"
        )
        return 0

    try:
        await scheduler.start()
    except CalendarNotAuthenticatedError as e:
        error(str(e))
        return 1

    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal_module.SIGTERM, signal_module.SIGINT):
        loop.add_signal_handler(sig, shutdown_event.set)

    logger.info("Scheduler running, press Ctrl+C to stop")
    try:
        await shutdown_event.wait()
    finally:
        await scheduler.stop()
    return 0
