"""
Slug parser and shape detection.

Converts slug strings back into typed Slug models and infers the entity
kind from the slug's shape:
- Task:    ACME-42
- Sprint:  ACME-S-3
- Project: ACME-P-2

Public API:
    - normalize_slug: Trim and uppercase user input
    - parse_slug: Parse string slug into a Slug model
    - validate_slug: Check if a string is a well-formed slug
    - get_slug_kind: Determine the entity kind without full parsing
"""

import re

from portalkeys.core.slugs.models import KEY_PATTERN, EntityKind, Slug

_NUMBER_PATTERN = r"[1-9]\d*"

# Keys never contain hyphens, so the three shapes cannot overlap
_TASK_REGEX = re.compile(rf"^({KEY_PATTERN})-({_NUMBER_PATTERN})$")
_SPRINT_REGEX = re.compile(rf"^({KEY_PATTERN})-S-({_NUMBER_PATTERN})$")
_PROJECT_REGEX = re.compile(rf"^({KEY_PATTERN})-P-({_NUMBER_PATTERN})$")

SPRINT_INFIX = "-S-"


def normalize_slug(value: str) -> str:
    """
    Normalize user-supplied slug text.

    Example:
        >>> normalize_slug("  acme-s-3 ")
        'ACME-S-3'
    """
    return (value or "").strip().upper()


def validate_slug(slug: str) -> bool:
    """
    Check if a string is a well-formed slug of any kind.

    Examples:
        >>> validate_slug("ACME-42")
        True
        >>> validate_slug("ACME-S-3")
        True
        >>> validate_slug("acme-42")
        False
    """
    return get_slug_kind(slug) is not None


def get_slug_kind(slug: str) -> EntityKind | None:
    """
    Determine the entity kind of a slug without full parsing.

    Examples:
        >>> get_slug_kind("ACME-42")
        'task'
        >>> get_slug_kind("ACME-S-3")
        'sprint'
        >>> get_slug_kind("ACME-P-2")
        'project'
        >>> get_slug_kind("not a slug") is None
        True
    """
    if _TASK_REGEX.match(slug):
        return "task"
    elif _SPRINT_REGEX.match(slug):
        return "sprint"
    elif _PROJECT_REGEX.match(slug):
        return "project"
    return None


def parse_slug(slug: str) -> Slug:
    """
    Parse a slug string into its typed model.

    Raises:
        ValueError: If the slug is not well-formed

    Examples:
        >>> parsed = parse_slug("ACME-S-3")
        >>> (parsed.key, parsed.kind, parsed.number)
        ('ACME', 'sprint', 3)
        >>> parse_slug("ACME")
        Traceback (most recent call last):
            ...
        ValueError: Invalid slug format: ACME
    """
    for kind, regex in (
        ("task", _TASK_REGEX),
        ("sprint", _SPRINT_REGEX),
        ("project", _PROJECT_REGEX),
    ):
        match = regex.match(slug)
        if match:
            key, number = match.groups()
            return Slug(key=key, kind=kind, number=int(number))

    raise ValueError(f"Invalid slug format: {slug}")


def looks_like_sprint(slug: str) -> bool:
    """True if the slug carries the sprint infix marker."""
    return SPRINT_INFIX in slug


def looks_like_task(slug: str) -> bool:
    """True if the slug is a key followed by a bare numeric suffix."""
    return _TASK_REGEX.match(slug) is not None
