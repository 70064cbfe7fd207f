"""
Slug lookup: resolving a slug back to the entity carrying it.

Read-only. The slug's shape picks the first table to search:
- ``-S-`` infix → sprints
- ``KEY-N`` → tasks
- anything else falls back through tasks, projects, sprints
"""

import logging
from pathlib import Path

from portalkeys.core.db.connection import DEFAULT_BUSY_TIMEOUT, get_connection
from portalkeys.core.db.entities import find_by_slug
from portalkeys.core.db.schema import validate_entity_kind
from portalkeys.core.slugs.models import EntityKind, SlugMatch
from portalkeys.core.slugs.parser import (
    get_slug_kind,
    looks_like_sprint,
    looks_like_task,
    normalize_slug,
)

logger = logging.getLogger(__name__)

FALLBACK_ORDER: tuple[EntityKind, ...] = ("task", "project", "sprint")


def search_order(slug: str) -> list[EntityKind]:
    """
    Tables to search for a normalized slug, most likely first.

    Examples:
        >>> search_order("ACME-S-3")
        ['sprint', 'task', 'project']
        >>> search_order("ACME-42")
        ['task', 'project', 'sprint']
        >>> search_order("ACME-P-2")
        ['project', 'task', 'sprint']
    """
    first: EntityKind | None
    if looks_like_sprint(slug):
        first = "sprint"
    elif looks_like_task(slug):
        first = "task"
    else:
        first = get_slug_kind(slug)

    if first is None:
        return list(FALLBACK_ORDER)
    return [first] + [kind for kind in FALLBACK_ORDER if kind != first]


class SlugLookup:
    """Resolves slugs to entity references."""

    def __init__(self, db_path: Path | str, *, timeout: float = DEFAULT_BUSY_TIMEOUT) -> None:
        self.db_path = Path(db_path)
        self.timeout = timeout

    def resolve(self, slug: str, kind: str | None = None) -> SlugMatch | None:
        """
        Find the entity carrying a slug.

        Args:
            slug: Slug text; trimmed and uppercased before matching
            kind: Optional hint ("task", "sprint", "project"); when given,
                only that table is searched

        Returns:
            The match, or None if no entity carries the slug

        Raises:
            ValueError: If kind is not a known entity kind
        """
        normalized = normalize_slug(slug)
        if not normalized:
            return None

        if kind is not None:
            validate_entity_kind(kind)
            kinds: list[EntityKind] = [kind]  # type: ignore[list-item]
        else:
            kinds = search_order(normalized)

        with get_connection(self.db_path, timeout=self.timeout) as conn:
            for candidate in kinds:
                row = find_by_slug(conn, candidate, normalized)
                if row is not None:
                    logger.debug("Resolved %s to %s %s", normalized, candidate, row["id"])
                    return SlugMatch(kind=candidate, entity_id=row["id"], slug=normalized)

        logger.debug("No entity carries slug %s", normalized)
        return None
