"""
portalkeys CLI - Slug commands.

Assign slugs to entities and resolve slugs back to entities.
"""

import json

import typer
from rich.console import Console

from portalkeys.cli.context import get_engine
from portalkeys.cli.errors import ExitCode, print_engine_error, print_error
from portalkeys.core.errors import KeyEngineError
from portalkeys.core.slugs.models import ENTITY_KINDS, EntityRef

console = Console()
app = typer.Typer(
    name="slug",
    help="Assign and resolve slugs",
    no_args_is_help=True,
)


def _check_kind(kind: str) -> str:
    kind = kind.lower()
    if kind not in ENTITY_KINDS:
        print_error(
            f"Invalid kind: {kind}",
            solution=f"use one of: {', '.join(ENTITY_KINDS)}",
        )
        raise typer.Exit(ExitCode.USER_ERROR)
    return kind


@app.command()
def assign(
    ctx: typer.Context,
    kind: str = typer.Argument(..., help="Entity kind: task, sprint, or project"),
    entity_id: str = typer.Argument(..., help="Entity id"),
) -> None:
    """
    Assign a slug to an entity (or print the one it already has).

    Examples:
        portalkeys slug assign task task_123
        portalkeys slug assign sprint sprint_9
    """
    ref = EntityRef(kind=_check_kind(kind), id=entity_id)
    engine = get_engine(ctx)

    try:
        slug = engine.assign_slug(ref)
    except KeyEngineError as e:
        raise typer.Exit(print_engine_error(e))

    console.print(slug)


@app.command()
def resolve(
    ctx: typer.Context,
    slug: str = typer.Argument(..., help="Slug to look up, e.g. ACME-42"),
    kind: str | None = typer.Option(
        None,
        "--kind",
        "-k",
        help="Only search this entity kind",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON",
    ),
) -> None:
    """
    Find the entity carrying a slug.

    Examples:
        portalkeys slug resolve ACME-42
        portalkeys slug resolve acme-s-3
        portalkeys slug resolve ACME-P-2 --kind project --json
    """
    engine = get_engine(ctx)
    match = engine.resolve_slug(slug, _check_kind(kind) if kind else None)

    if match is None:
        print_error(f"No entity found for slug: {slug}")
        raise typer.Exit(ExitCode.USER_ERROR)

    if json_output:
        console.print(json.dumps(match.model_dump(), indent=2))
    else:
        console.print(f"{match.kind} [bold]{match.entity_id}[/bold] [dim]({match.slug})[/dim]")
