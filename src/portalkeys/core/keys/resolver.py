"""
Uniqueness resolution for key candidates.

Given ranked candidates, settle on one key that is free across the whole
registry:
1. The first candidate with no registry row wins as-is.
2. If every candidate collides, the top candidate gets a numeric suffix
   (1, 2, 3, ...), re-checked after each step.
3. Past the attempt ceiling, KeyExhaustionError.

Example:
    >>> resolver = UniquenessResolver(registry, max_suffix_attempts=99)
    >>> with registry.connect() as conn:
    ...     resolver.resolve(conn, ["DESIGN"])   # DESIGN already registered
    'DESIGN1'
"""

from __future__ import annotations

import logging
import sqlite3
from typing import TYPE_CHECKING

from portalkeys.core.errors import KeyExhaustionError
from portalkeys.core.keys.candidates import with_suffix

if TYPE_CHECKING:
    from portalkeys.core.keys.registry import KeyRegistry

logger = logging.getLogger(__name__)

DEFAULT_MAX_SUFFIX_ATTEMPTS = 999


class UniquenessResolver:
    """Finds a free key among ranked candidates, falling back to suffixing."""

    def __init__(
        self, registry: KeyRegistry, max_suffix_attempts: int = DEFAULT_MAX_SUFFIX_ATTEMPTS
    ) -> None:
        self.registry = registry
        self.max_suffix_attempts = max_suffix_attempts

    def resolve(self, conn: sqlite3.Connection, candidates: list[str]) -> str:
        """
        Return the first free key derived from the candidates.

        Args:
            conn: Open connection; membership is checked inside its transaction
            candidates: Ranked candidates, most preferred first

        Returns:
            A key with no registry row

        Raises:
            ValueError: If no candidates were given
            KeyExhaustionError: If no suffix within the ceiling is free
        """
        if not candidates:
            raise ValueError("At least one key candidate is required")

        for candidate in candidates:
            if not self.registry.key_exists(conn, candidate):
                logger.debug("Key candidate %s is free", candidate)
                return candidate
            logger.debug("Key candidate %s is taken", candidate)

        base = candidates[0]
        for suffix in range(1, self.max_suffix_attempts + 1):
            key = with_suffix(base, suffix)
            if not self.registry.key_exists(conn, key):
                logger.info("All candidates taken, using suffixed key %s", key)
                return key

        raise KeyExhaustionError(base, self.max_suffix_attempts)
