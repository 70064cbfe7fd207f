"""
Standardized error handling and exit codes for the portalkeys CLI.

Engine exceptions are mapped to a short problem statement, an optional
hint, and an exit code, so every command reports failures the same way.
"""

from enum import IntEnum

from rich.console import Console

from portalkeys.core.errors import (
    ConcurrentAssignmentError,
    EmptyNameError,
    EntityNotFoundError,
    InvalidKeyError,
    KeyConflictError,
    KeyEngineError,
    KeyExhaustionError,
    KeyNotFoundError,
    ScopeNotFoundError,
)

console = Console()


class ExitCode(IntEnum):
    """Standard exit codes for portalkeys CLI operations."""

    SUCCESS = 0
    """Operation completed successfully."""

    GENERAL_ERROR = 1
    """Generic or transient error (safe to retry later)."""

    USER_ERROR = 2
    """Bad input or missing data (actionable by user)."""

    SIGINT = 130
    """Terminated by SIGINT (Ctrl+C) - Unix standard."""


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a standardized error message with actionable guidance.

    Args:
        problem: Brief description of what went wrong
        reason: Optional explanation of why it happened
        solution: Optional command or action to fix it

    Example:
        >>> print_error(
        ...     "Key 'ACME' already exists",
        ...     solution="portalkeys keys list",
        ... )
    """
    console.print(f"[red]Error:[/red] {problem}")

    if reason:
        console.print(f"[dim]{reason}[/dim]")

    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {solution}")


def print_engine_error(error: KeyEngineError) -> ExitCode:
    """
    Print an engine exception and return the exit code for it.

    Contention is the only transient failure; everything else needs the
    caller to change something.
    """
    if isinstance(error, ConcurrentAssignmentError):
        print_error(
            str(error),
            reason=f"Lost the counter race {error.retries + 1} times",
            solution="retry the command",
        )
        return ExitCode.GENERAL_ERROR

    if isinstance(error, KeyExhaustionError):
        print_error(
            str(error),
            reason="Every suffixed variant of the key is taken",
            solution="portalkeys keys generate ORG_ID --key CUSTOM",
        )
    elif isinstance(error, EmptyNameError):
        print_error(
            str(error),
            reason="The name has no letters or digits to build a key from",
            solution="portalkeys keys generate ORG_ID --key CUSTOM",
        )
    elif isinstance(error, InvalidKeyError):
        print_error(str(error), solution="use 2-8 letters or digits starting with a letter, e.g. ACME")
    elif isinstance(error, (KeyConflictError, KeyNotFoundError)):
        print_error(str(error), solution="portalkeys keys list")
    elif isinstance(error, (ScopeNotFoundError, EntityNotFoundError)):
        print_error(str(error), reason="Check the id against the portal's records")
    else:
        print_error(str(error))
    return ExitCode.USER_ERROR
