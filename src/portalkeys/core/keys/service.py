"""
Key service: minting registry rows for scopes.

Combines the candidate generator, the uniqueness resolver, and the
registry into the two ways a key comes to exist:
- generate_key(): explicit, administrative creation
- ensure_key(): lazy creation on first slug assignment in a scope

Both are idempotent for a scope that already has a row. The generator and
resolver only run on first use.
"""

from __future__ import annotations

import logging
import sqlite3

from portalkeys.core.config.models import KeysConfig
from portalkeys.core.db.entities import get_organization, get_sub_unit
from portalkeys.core.errors import EmptyNameError, PermissionDeniedError, ScopeNotFoundError
from portalkeys.core.keys.candidates import generate_candidates, timestamp_candidate, validate_key
from portalkeys.core.keys.models import Actor, KeyRegistryEntry, Scope
from portalkeys.core.keys.registry import KeyRegistry
from portalkeys.core.keys.resolver import UniquenessResolver

logger = logging.getLogger(__name__)

# Lost insert races retried before giving up on creating a scope's key
MAX_INSERT_ATTEMPTS = 3


class KeyService:
    """
    Creates and looks up registry rows per scope.

    Example:
        >>> service = KeyService(KeyRegistry(db_path), KeysConfig())
        >>> key_id = service.generate_key(Scope(organization_id="org_acme"))
        >>> service.registry.get(key_id).key
        'ACME'
    """

    def __init__(self, registry: KeyRegistry, config: KeysConfig | None = None) -> None:
        self.registry = registry
        self.config = config or KeysConfig()
        self.resolver = UniquenessResolver(registry, self.config.max_suffix_attempts)

    def effective_scope(self, scope: Scope) -> Scope:
        """Apply the deployment's scoping mode to a requested scope."""
        if self.config.scoping == "organization" and scope.sub_unit_id:
            return scope.organization_only()
        return scope

    def scope_names(self, conn: sqlite3.Connection, scope: Scope) -> tuple[str, str | None]:
        """
        Look up the organization (and sub-unit) names behind a scope.

        Raises:
            ScopeNotFoundError: If the organization or sub-unit is missing,
                or the sub-unit belongs to another organization
        """
        organization = get_organization(conn, scope.organization_id)
        if organization is None:
            raise ScopeNotFoundError("organization", scope.organization_id)

        if scope.sub_unit_id is None:
            return organization["name"], None

        sub_unit = get_sub_unit(conn, scope.sub_unit_id)
        if sub_unit is None or sub_unit["organization_id"] != scope.organization_id:
            raise ScopeNotFoundError("sub_unit", scope.sub_unit_id)
        return organization["name"], sub_unit["name"]

    def candidates_for(self, organization_name: str, sub_unit_name: str | None = None) -> list[str]:
        """
        Generate candidates, applying the configured empty-name policy.

        Raises:
            EmptyNameError: If the name yields nothing and the policy is "error"
        """
        candidates = generate_candidates(organization_name, sub_unit_name)
        if candidates:
            return candidates

        if self.config.empty_name_policy == "timestamp":
            fallback = timestamp_candidate()
            logger.warning(
                "No key candidates for %r, using degraded timestamp key %s",
                organization_name,
                fallback,
            )
            return [fallback]

        raise EmptyNameError(organization_name)

    def generate_key(
        self,
        scope: Scope,
        *,
        custom_key: str | None = None,
        description: str | None = None,
        is_default: bool = True,
        actor: Actor | None = None,
    ) -> int:
        """
        Create (or return) the registry row for a scope.

        Without a custom key, an existing row for the scope is returned as-is.
        A custom key is normalized and validated, and goes through the same
        uniqueness resolution: if it is taken, a suffixed variant is used.
        Requesting a custom key equal to the scope's existing key returns
        that row.

        Args:
            scope: Organization, optionally narrowed to a sub-unit
            custom_key: Explicit key to register instead of a derived one
            description: Free-text description stored on the row
            is_default: Make this the scope's default row
            actor: Caller; when given, must have the admin role

        Returns:
            The registry row id

        Raises:
            PermissionDeniedError: If actor is not an admin
            ScopeNotFoundError: If the scope does not exist
            InvalidKeyError: If custom_key is malformed
            EmptyNameError: If no key can be derived from the scope's name
            KeyExhaustionError: If no free suffix was found
        """
        if actor is not None and not actor.is_admin:
            raise PermissionDeniedError(actor.role, "generate_key")

        scope = self.effective_scope(scope)
        requested = validate_key(custom_key) if custom_key else None

        with self.registry.connect() as conn:
            organization_name, sub_unit_name = self.scope_names(conn, scope)

            existing = self.registry.find_for_scope(scope, conn)
            if existing is not None and (requested is None or requested == existing.key):
                logger.debug("Scope %s already has key %s", scope, existing.key)
                return existing.id

            candidates = (
                [requested] if requested else self.candidates_for(organization_name, sub_unit_name)
            )
            entry = self._insert_resolved(
                conn,
                scope,
                candidates,
                requested=requested,
                description=description or _default_description(organization_name, sub_unit_name),
                is_default=is_default,
                created_by=actor.id if actor else None,
            )
        return entry.id

    def ensure_key(self, scope: Scope, *, created_by: str | None = None) -> KeyRegistryEntry:
        """
        Return the scope's active registry row, creating a default one if needed.

        Raises:
            ScopeNotFoundError: If the scope does not exist, or it has no key
                and automatic creation is disabled
            EmptyNameError: If no key can be derived and the policy is "error"
            KeyExhaustionError: If no free suffix was found
        """
        scope = self.effective_scope(scope)

        existing = self.registry.find_for_scope(scope)
        if existing is not None:
            return existing

        with self.registry.connect() as conn:
            organization_name, sub_unit_name = self.scope_names(conn, scope)
            if not self.config.auto_create_keys:
                raise ScopeNotFoundError(
                    "organization",
                    scope.organization_id,
                    message=f"No active key registered for scope {scope}",
                )

            entry = self._insert_resolved(
                conn,
                scope,
                self.candidates_for(organization_name, sub_unit_name),
                requested=None,
                description=_default_description(organization_name, sub_unit_name),
                is_default=True,
                created_by=created_by,
            )
        return entry

    def _insert_resolved(
        self,
        conn: sqlite3.Connection,
        scope: Scope,
        candidates: list[str],
        *,
        requested: str | None,
        description: str | None,
        is_default: bool,
        created_by: str | None,
    ) -> KeyRegistryEntry:
        """
        Resolve a free key and insert it, retrying if a concurrent insert won.

        The scope is re-read after taking the write lock: a row committed
        by another creator since the caller's first look is returned
        instead of inserting a second one. The same applies to a row with
        the requested key. A different requested key still gets a new row.

        A concurrent creator can also take the resolved key between the
        membership check and the insert. That shows up as an
        IntegrityError, and the insert is retried.
        """
        last_error: sqlite3.IntegrityError | None = None
        for attempt in range(MAX_INSERT_ATTEMPTS):
            conn.execute("BEGIN IMMEDIATE")
            existing = self.registry.find_for_scope(scope, conn)
            if existing is not None and (requested is None or requested == existing.key):
                conn.rollback()
                logger.debug("Scope %s got key %s from a concurrent creator", scope, existing.key)
                return existing

            key = self.resolver.resolve(conn, candidates)
            try:
                key_id = self.registry.insert(
                    conn,
                    key,
                    scope,
                    description=description,
                    is_default=is_default,
                    created_by=created_by,
                )
                conn.commit()
            except sqlite3.IntegrityError as e:
                conn.rollback()
                last_error = e
                logger.warning(
                    "Key insert for scope %s lost a race (attempt %d/%d): %s",
                    scope,
                    attempt + 1,
                    MAX_INSERT_ATTEMPTS,
                    e,
                )
                winner = self.registry.find_for_scope(scope, conn)
                if winner is not None and is_default:
                    return winner
                continue

            entry = self.registry.get(key_id, conn)
            assert entry is not None
            logger.info("Created key %s for scope %s", entry.key, scope)
            return entry

        raise sqlite3.IntegrityError(
            f"Could not register a key for scope {scope} after "
            f"{MAX_INSERT_ATTEMPTS} attempts: {last_error}"
        )


def _default_description(organization_name: str, sub_unit_name: str | None) -> str:
    if sub_unit_name:
        return f"All items for {organization_name} - {sub_unit_name}"
    return f"All items for {organization_name}"
