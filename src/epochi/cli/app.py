"""Main CLI application."""

import typer

from epochi.cli.commands import config, ledger, parse, pending, serve, wallet

app = typer.Typer(
    name="epochi",
    help="Epochi - calendar-driven transaction scheduler",
    no_args_is_help=True,
)

for command in (serve, parse, pending, wallet, ledger, config):
    command.register(app)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
