"""
Exceptions raised by the key and slug engine.

Exception Hierarchy:
    KeyEngineError (base)
    ├── EmptyNameError (no usable name text for key candidates)
    ├── InvalidKeyError (key fails format validation)
    ├── ScopeNotFoundError (organization/sub-unit/project missing)
    ├── EntityNotFoundError (task/sprint/project missing)
    ├── KeyExhaustionError (suffix search hit its ceiling)
    ├── KeyConflictError (explicit key already registered)
    ├── KeyNotFoundError (no registry row with that key)
    ├── ConcurrentAssignmentError (optimistic retry ceiling hit)
    └── PermissionDeniedError (actor lacks the admin role)

All of these are terminal for the operation that raised them. Only the
bulk migration loop catches them, per entity, and counts the failure.

Example:
    >>> from portalkeys.core.errors import KeyExhaustionError
    >>> try:
    ...     raise KeyExhaustionError("ACME", attempts=999)
    ... except KeyExhaustionError as e:
    ...     print(e.base_key, e.attempts)
    ACME 999
"""


class KeyEngineError(Exception):
    """
    Base exception for all key and slug engine errors.

    Attributes:
        message: Human-readable error message
        context: Additional context as keyword arguments
    """

    def __init__(self, message: str, **context: object) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        """Return string representation of the error."""
        return self.message


class EmptyNameError(KeyEngineError):
    """Raised when candidate generation is given no usable name text."""

    def __init__(self, name: str | None = None) -> None:
        super().__init__(f"Cannot derive a key from empty name: {name!r}", name=name)
        self.name = name


class InvalidKeyError(KeyEngineError):
    """Raised when a key is not 2-8 uppercase letters or digits, letter first."""

    def __init__(self, key: str) -> None:
        super().__init__(
            f"Invalid key {key!r}: must be 2-8 uppercase letters or digits starting with a letter",
            key=key,
        )
        self.key = key


class ScopeNotFoundError(KeyEngineError):
    """
    Raised when the organization, sub-unit, or project behind a scope is missing.

    Attributes:
        scope_kind: "organization", "sub_unit" or "project"
        scope_id: Identifier that could not be found (may be None)
    """

    def __init__(self, scope_kind: str, scope_id: str | None, message: str | None = None):
        super().__init__(
            message or f"{scope_kind.replace('_', ' ').capitalize()} not found: {scope_id}",
            scope_kind=scope_kind,
            scope_id=scope_id,
        )
        self.scope_kind = scope_kind
        self.scope_id = scope_id


class EntityNotFoundError(KeyEngineError):
    """Raised when the task, sprint, or project to slug does not exist."""

    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(f"{kind.capitalize()} not found: {entity_id}", kind=kind)
        self.kind = kind
        self.entity_id = entity_id


class KeyExhaustionError(KeyEngineError):
    """
    Raised when no free numeric suffix was found within the attempt ceiling.

    Requires operator intervention: register a key manually.
    """

    def __init__(self, base_key: str, attempts: int) -> None:
        super().__init__(
            f"No free key derived from {base_key!r} after {attempts} attempts",
            base_key=base_key,
            attempts=attempts,
        )
        self.base_key = base_key
        self.attempts = attempts


class KeyConflictError(KeyEngineError):
    """Raised when an explicitly requested key is already registered."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Key {key!r} already exists", key=key)
        self.key = key


class KeyNotFoundError(KeyEngineError):
    """Raised when an operation names a key that is not registered."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Key not found: {key}", key=key)
        self.key = key


class ConcurrentAssignmentError(KeyEngineError):
    """
    Raised when slug assignment keeps losing the counter race.

    Transient: callers may retry the whole operation later.
    """

    def __init__(self, message: str, retries: int = 0) -> None:
        super().__init__(message, retries=retries)
        self.retries = retries


class PermissionDeniedError(KeyEngineError):
    """Raised when a non-admin actor calls an administrative operation."""

    def __init__(self, role: str | None, operation: str) -> None:
        super().__init__(
            f"Permission denied: {operation} requires the admin role (got {role!r})",
            role=role,
            operation=operation,
        )
        self.role = role
        self.operation = operation
