"""
portalkeys CLI - Bulk migration commands.

Rebuild every key and slug, or backfill slugs that are missing.
"""

import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from portalkeys.cli.context import get_engine
from portalkeys.cli.errors import ExitCode, print_engine_error, print_error
from portalkeys.core.errors import KeyEngineError
from portalkeys.core.migration.models import MigrationResult

console = Console()
app = typer.Typer(
    name="migrate",
    help="Rebuild or backfill keys and slugs",
    no_args_is_help=True,
)


def _load_overrides(path: Path) -> dict[str, str]:
    try:
        data = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        print_error(f"Cannot read overrides file {path}", reason=str(e))
        raise typer.Exit(ExitCode.USER_ERROR)

    if not isinstance(data, dict) or not all(isinstance(v, str) for v in data.values()):
        print_error(
            f"Invalid overrides file {path}",
            reason='Expected a JSON object of scope name to key, e.g. {"Squirrels": "SQRL"}',
        )
        raise typer.Exit(ExitCode.USER_ERROR)
    return {str(k): v for k, v in data.items()}


def _print_result(result: MigrationResult) -> None:
    if result.keys:
        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Scope")
        table.add_column("Key", style="bold")
        for label, key in sorted(result.keys.items()):
            table.add_row(label, key)
        console.print(table)

    console.print(
        f"Processed {result.processed}, migrated [green]{result.migrated}[/green], "
        f"failed [red]{result.failed}[/red], keys created {result.keys_created}"
    )
    for ref, message in result.errors.items():
        console.print(f"[red]✗[/red] {ref}: {message}")


@app.command()
def run(
    ctx: typer.Context,
    overrides: Path | None = typer.Option(
        None,
        "--overrides",
        "-o",
        help="JSON file mapping organization (or Org/SubUnit) names to keys",
        exists=True,
        dir_okay=False,
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Skip the confirmation prompt",
    ),
) -> None:
    """
    Delete all keys and re-slug every project, sprint, and task.

    WARNING: Destructive. Previously issued slugs may change. Run only
    while nothing else writes to the store.

    Examples:
        portalkeys migrate run
        portalkeys migrate run --overrides keys.json --yes
    """
    key_overrides = _load_overrides(overrides) if overrides else None

    if not yes:
        confirmation = typer.confirm(
            "Delete all keys and reassign every slug?",
            default=False,
        )
        if not confirmation:
            console.print("[yellow]Cancelled.[/yellow]")
            raise typer.Exit(0)

    engine = get_engine(ctx)
    try:
        result = engine.run_migration(key_overrides)
    except KeyEngineError as e:
        raise typer.Exit(print_engine_error(e))

    _print_result(result)
    if not result.success:
        raise typer.Exit(ExitCode.GENERAL_ERROR)


@app.command()
def backfill(ctx: typer.Context) -> None:
    """
    Assign slugs to entities that have none, keeping existing ones.

    Examples:
        portalkeys migrate backfill
    """
    engine = get_engine(ctx)
    result = engine.backfill()

    _print_result(result)
    if not result.success:
        raise typer.Exit(ExitCode.GENERAL_ERROR)
