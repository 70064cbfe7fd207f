"""
Sequence assignment: minting slugs from registry counters.

The assigner reads a counter, then asks the registry to bump it only if it
still holds the value read. Losing that race means another caller took the
number; the assigner backs off and tries again with a fresh read. The
winner commits the counter before writing the slug, so a number handed out
is never handed out again, even if the slug write then fails (the number
is burned, leaving a gap).

Flow:
    entity → scope → registry row (created on first use)
           → read counter N → try_increment(N) → commit
           → write slug KEY-(N+1) onto the entity if it still has none
"""

from __future__ import annotations

import logging
import sqlite3
import time
from typing import Any

from portalkeys.core.config.models import SequenceConfig
from portalkeys.core.db.entities import get_entity, get_organization, write_slug
from portalkeys.core.errors import (
    ConcurrentAssignmentError,
    EntityNotFoundError,
    ScopeNotFoundError,
)
from portalkeys.core.keys.models import KeyRegistryEntry, Scope
from portalkeys.core.keys.registry import KeyRegistry
from portalkeys.core.keys.service import KeyService
from portalkeys.core.slugs.models import EntityRef, format_slug

logger = logging.getLogger(__name__)


def _is_busy(error: sqlite3.OperationalError) -> bool:
    """True for lock contention; other operational errors are real faults."""
    code = getattr(error, "sqlite_errorcode", None)
    if code is not None:
        return (code & 0xFF) in (sqlite3.SQLITE_BUSY, sqlite3.SQLITE_LOCKED)
    message = str(error).lower()
    return "locked" in message or "busy" in message


class SequenceAssigner:
    """
    Assigns slugs to tasks, sprints, and projects.

    Example:
        >>> assigner = SequenceAssigner(registry, key_service)
        >>> assigner.assign(EntityRef(kind="task", id="task_1"))
        'ACME-1'
    """

    def __init__(
        self,
        registry: KeyRegistry,
        key_service: KeyService,
        config: SequenceConfig | None = None,
    ) -> None:
        self.registry = registry
        self.key_service = key_service
        self.config = config or SequenceConfig()

    def assign(
        self,
        ref: EntityRef,
        *,
        max_retries: int | None = None,
        created_by: str | None = None,
    ) -> str:
        """
        Return the entity's slug, assigning one if it has none.

        Idempotent: a slugged entity gets its existing slug back and no
        counter moves.

        Args:
            ref: The task, sprint, or project to slug
            max_retries: Override the configured retry ceiling (bulk
                migration runs with 0)
            created_by: Recorded on a registry row created on first use

        Returns:
            The entity's slug

        Raises:
            EntityNotFoundError: If the entity does not exist
            ScopeNotFoundError: If the entity's scope cannot be determined,
                or it has no key and automatic creation is disabled
            EmptyNameError: If a new key cannot be derived from the scope's name
            KeyExhaustionError: If no free key was found for a new scope
            ConcurrentAssignmentError: If every attempt lost the counter race
        """
        retries = self.config.max_retries if max_retries is None else max_retries

        with self.registry.connect() as conn:
            entity = get_entity(conn, ref.kind, ref.id)
            if entity is None:
                raise EntityNotFoundError(ref.kind, ref.id)
            if entity["slug"]:
                logger.debug("%s already has slug %s", ref, entity["slug"])
                return str(entity["slug"])
            scope = self._scope_for(conn, ref, entity)

        entry = self.key_service.ensure_key(scope, created_by=created_by)

        delay_ms = float(self.config.retry_delay_ms)
        last_error: sqlite3.OperationalError | None = None
        for attempt in range(retries + 1):
            try:
                result = self._attempt(ref, entry)
            except sqlite3.OperationalError as e:
                if not _is_busy(e):
                    raise
                last_error = e
                logger.warning(
                    "Slug assignment for %s hit a busy store (attempt %d/%d): %s",
                    ref,
                    attempt + 1,
                    retries + 1,
                    e,
                )
                result = None

            if isinstance(result, str):
                return result
            if isinstance(result, KeyRegistryEntry):
                entry = result

            if attempt < retries:
                time.sleep(delay_ms / 1000)
                delay_ms *= self.config.retry_backoff

        raise ConcurrentAssignmentError(
            f"Failed to assign a slug to {ref} after {retries + 1} attempts",
            retries=retries,
        ) from last_error

    def _attempt(self, ref: EntityRef, entry: KeyRegistryEntry) -> str | KeyRegistryEntry | None:
        """
        One read-increment-write round.

        Returns:
            The slug on success, a replacement registry row if the one in
            hand disappeared, or None if the round should be retried.
        """
        with self.registry.connect() as conn:
            current = self.registry.get(entry.id, conn)
            if current is None:
                logger.warning("Key %s vanished during assignment of %s", entry.key, ref)
                return self.key_service.ensure_key(entry.scope)

            expected = current.counter_for(ref.kind)
            if not self.registry.try_increment(conn, current.id, ref.kind, expected):
                conn.rollback()
                logger.warning(
                    "Lost counter race on %s %s at %d for %s",
                    current.key,
                    ref.kind,
                    expected,
                    ref,
                )
                return None
            conn.commit()

            number = expected + 1
            slug = format_slug(current.key, ref.kind, number)
            try:
                written = write_slug(conn, ref.kind, ref.id, slug, current.key, number)
                conn.commit()
            except sqlite3.IntegrityError:
                conn.rollback()
                logger.warning("Slug %s already taken, burning number %d", slug, number)
                return None

            if not written:
                entity = get_entity(conn, ref.kind, ref.id)
                if entity is None:
                    raise EntityNotFoundError(ref.kind, ref.id)
                logger.info(
                    "%s was slugged concurrently as %s, number %d left unused",
                    ref,
                    entity["slug"],
                    number,
                )
                return str(entity["slug"])

        logger.info("Assigned %s to %s", slug, ref)
        return slug

    def _scope_for(self, conn: sqlite3.Connection, ref: EntityRef, entity: dict[str, Any]) -> Scope:
        """Derive the scope a slug is minted in; tasks inherit their project's."""
        if ref.kind == "task":
            project_id = entity.get("project_id")
            if not project_id:
                raise ScopeNotFoundError(
                    "project", None, message=f"Task {ref.id} has no project to take a key from"
                )
            project = get_entity(conn, "project", project_id)
            if project is None:
                raise ScopeNotFoundError("project", project_id)
            entity = project

        if get_organization(conn, entity["organization_id"]) is None:
            raise ScopeNotFoundError("organization", entity["organization_id"])

        return self.key_service.effective_scope(
            Scope(organization_id=entity["organization_id"], sub_unit_id=entity.get("sub_unit_id"))
        )
