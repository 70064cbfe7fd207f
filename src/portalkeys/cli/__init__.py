"""
portalkeys CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

import logging
import sys
from pathlib import Path

import typer
from rich.console import Console

from portalkeys import __version__
from portalkeys.cli import keys, migrate, slug
from portalkeys.cli.errors import ExitCode, print_error
from portalkeys.core.config.env import load_layered_env
from portalkeys.core.keys.candidates import generate_candidates

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Create the main Typer app
app = typer.Typer(
    name="portalkeys",
    help="Project keys and slugs for tasks, sprints, and projects",
    no_args_is_help=True,
    context_settings={"help_option_names": ["--help", "-h"]},
)

console = Console()


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"portalkeys {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    db: Path | None = typer.Option(
        None,
        "--db",
        help="SQLite database path (overrides config and PORTALKEYS_DB)",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """
    portalkeys - project key and slug assignment.

    Derives short keys (ACME) from organization names and hands out
    sequential slugs: ACME-42 for tasks, ACME-S-3 for sprints, ACME-P-2
    for projects.

    Common Workflows:
        portalkeys candidates "Acme Corp"          # Preview key candidates
        portalkeys keys generate org_acme          # Register a key
        portalkeys slug assign task task_123       # Slug a task
        portalkeys slug resolve ACME-42            # Look a slug up
        portalkeys migrate backfill                # Slug everything missing one
    """
    # Precedence: OS env > project .env > user .env
    load_layered_env()

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )

    ctx.obj = {"debug": debug, "db": db}


@app.command()
def candidates(
    name: str = typer.Argument(..., help="Organization name"),
    sub_unit: str | None = typer.Option(
        None,
        "--sub-unit",
        "-s",
        help="Sub-unit name to combine with the organization",
    ),
) -> None:
    """
    Show ranked key candidates for a name, without registering anything.

    Examples:
        portalkeys candidates Squirrels
        portalkeys candidates Acme --sub-unit Marketing
    """
    ranked = generate_candidates(name, sub_unit)
    if not ranked:
        print_error(
            f"No key candidates for {name!r}",
            reason="The name has no letters or digits",
        )
        raise typer.Exit(ExitCode.USER_ERROR)

    for position, candidate in enumerate(ranked, start=1):
        style = "bold green" if position == 1 else "dim"
        console.print(f"{position}. [{style}]{candidate}[/{style}]")


app.add_typer(keys.app, name="keys")
app.add_typer(slug.app, name="slug")
app.add_typer(migrate.app, name="migrate")


def cli_main() -> None:
    """Main CLI entry point."""
    app()


__all__ = ["app", "cli_main"]
