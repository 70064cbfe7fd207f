"""
portalkeys CLI - Key registry commands.

Generate, list, update, and rename registry keys.
"""

import json

import typer
from rich.console import Console
from rich.table import Table

from portalkeys.cli.context import get_engine
from portalkeys.cli.errors import ExitCode, print_engine_error, print_error
from portalkeys.core.errors import KeyEngineError
from portalkeys.core.keys.candidates import normalize_key
from portalkeys.core.keys.models import Scope

console = Console()
app = typer.Typer(
    name="keys",
    help="Manage registry keys",
    no_args_is_help=True,
)


@app.command()
def generate(
    ctx: typer.Context,
    organization_id: str = typer.Argument(..., help="Organization to mint a key for"),
    sub_unit: str | None = typer.Option(
        None,
        "--sub-unit",
        "-s",
        help="Narrow the scope to a sub-unit (sub-unit scoping only)",
    ),
    key: str | None = typer.Option(
        None,
        "--key",
        "-k",
        help="Explicit key instead of one derived from the name",
    ),
    description: str | None = typer.Option(
        None,
        "--description",
        "-d",
        help="Description stored with the key",
    ),
    default: bool = typer.Option(
        True,
        "--default/--no-default",
        help="Make this the scope's default key",
    ),
) -> None:
    """
    Generate (or show) the key for an organization.

    Without --key, an organization that already has a key gets it back
    unchanged. A taken --key is suffixed (DESIGN → DESIGN1).

    Examples:
        portalkeys keys generate org_acme
        portalkeys keys generate org_acme --key ACME
        portalkeys keys generate org_acme --sub-unit dept_web --no-default
    """
    engine = get_engine(ctx)
    scope = Scope(organization_id=organization_id, sub_unit_id=sub_unit)

    try:
        key_id = engine.generate_key(
            scope, custom_key=key, description=description, is_default=default
        )
    except KeyEngineError as e:
        raise typer.Exit(print_engine_error(e))

    entry = engine.registry.get(key_id)
    assert entry is not None
    console.print(f"[green]✓[/green] {entry.key} [dim](id {entry.id}, scope {entry.scope})[/dim]")


@app.command("list")
def list_keys(
    ctx: typer.Context,
    organization_id: str | None = typer.Option(
        None,
        "--org",
        help="Only keys for this organization",
    ),
    active: bool | None = typer.Option(
        None,
        "--active/--inactive",
        help="Filter by active flag",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON",
    ),
) -> None:
    """
    List registry keys with their counters.

    Examples:
        portalkeys keys list
        portalkeys keys list --org org_acme --active
        portalkeys keys list --json
    """
    engine = get_engine(ctx)
    entries = engine.list_keys(organization_id=organization_id, is_active=active)

    if json_output:
        console.print(json.dumps([entry.model_dump(mode="json") for entry in entries], indent=2))
        return

    if not entries:
        console.print("[yellow]No keys registered.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Key", style="bold")
    table.add_column("Scope")
    table.add_column("Default", justify="center")
    table.add_column("Active", justify="center")
    table.add_column("Tasks", justify="right")
    table.add_column("Sprints", justify="right")
    table.add_column("Projects", justify="right")

    for entry in entries:
        table.add_row(
            str(entry.id),
            entry.key,
            str(entry.scope),
            "✓" if entry.is_default else "",
            "✓" if entry.is_active else "[red]✗[/red]",
            str(entry.last_task_number),
            str(entry.last_sprint_number),
            str(entry.last_project_number),
        )

    console.print(table)


@app.command()
def update(
    ctx: typer.Context,
    key_id: int = typer.Argument(..., help="Registry id of the key"),
    description: str | None = typer.Option(None, "--description", "-d", help="New description"),
    default: bool | None = typer.Option(
        None,
        "--default/--no-default",
        help="Set or clear the default flag",
    ),
    active: bool | None = typer.Option(
        None,
        "--active/--inactive",
        help="Enable or disable minting from this key",
    ),
) -> None:
    """
    Update a key's description or flags.

    Making a key the default demotes the scope's previous default.

    Examples:
        portalkeys keys update 3 --default
        portalkeys keys update 3 --inactive
    """
    engine = get_engine(ctx)
    entry = engine.update_key(key_id, description=description, is_default=default, is_active=active)
    if entry is None:
        print_error(f"Key not found: {key_id}", solution="portalkeys keys list")
        raise typer.Exit(ExitCode.USER_ERROR)

    console.print(f"[green]✓[/green] Updated {entry.key}")


@app.command()
def rename(
    ctx: typer.Context,
    old_key: str = typer.Argument(..., help="Current key"),
    new_key: str = typer.Argument(..., help="New key"),
) -> None:
    """
    Rename a key and rewrite every slug built on it.

    Slug numbers are kept: ACME-42 becomes ACMEX-42.

    Examples:
        portalkeys keys rename ACME ACMEX
    """
    engine = get_engine(ctx)

    try:
        rewritten = engine.rename_key(old_key, new_key)
    except KeyEngineError as e:
        raise typer.Exit(print_engine_error(e))

    total = sum(rewritten.values())
    console.print(
        f"[green]✓[/green] Renamed {normalize_key(old_key)} → {normalize_key(new_key)} "
        f"[dim]({total} slugs rewritten)[/dim]"
    )
