"""
Slug models for tasks, sprints, and projects.

Slug Format:
    - Task:    {KEY}-{N}    → ACME-42
    - Sprint:  {KEY}-S-{N}  → ACME-S-3
    - Project: {KEY}-P-{N}  → ACME-P-2

N is taken from the key's per-kind counter, so numbers under one key are
unique and strictly increasing per kind. Once written onto an entity a
slug never changes.
"""

import re
from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator

EntityKind = Literal["task", "sprint", "project"]

ENTITY_KINDS: tuple[EntityKind, ...] = ("task", "sprint", "project")

# Infix marker between key and number; tasks have none
KIND_MARKERS: dict[str, str] = {
    "task": "",
    "sprint": "S",
    "project": "P",
}

KEY_PATTERN = r"[A-Z][A-Z0-9]{1,7}"
_KEY_REGEX = re.compile(rf"^{KEY_PATTERN}$")


def format_slug(key: str, kind: str, number: int) -> str:
    """
    Format a slug from its parts.

    Example:
        >>> format_slug("ACME", "task", 42)
        'ACME-42'
        >>> format_slug("ACME", "sprint", 3)
        'ACME-S-3'
        >>> format_slug("ACME", "project", 2)
        'ACME-P-2'
    """
    marker = KIND_MARKERS[kind]
    if marker:
        return f"{key}-{marker}-{number}"
    return f"{key}-{number}"


class Slug(BaseModel):
    """
    A parsed slug: key, entity kind, and sequence number.

    Example:
        >>> str(Slug(key="ACME", kind="sprint", number=3))
        'ACME-S-3'
    """

    key: str
    kind: EntityKind
    number: int

    model_config = ConfigDict(frozen=True)

    @field_validator("key")
    @classmethod
    def validate_key(cls, v: str) -> str:
        """Validate key is 2-8 uppercase letters or digits, letter first."""
        if not _KEY_REGEX.match(v):
            raise ValueError("Slug key must be 2-8 uppercase letters or digits, starting with a letter")
        return v

    @field_validator("number")
    @classmethod
    def validate_number(cls, v: int) -> int:
        """Validate that number is positive."""
        if v < 1:
            raise ValueError("Slug number must be positive (starts at 1)")
        return v

    def __str__(self) -> str:
        return format_slug(self.key, self.kind, self.number)


class EntityRef(BaseModel):
    """Reference to a slugged entity: its kind and id."""

    kind: EntityKind
    id: str

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return f"{self.kind}:{self.id}"


class SlugMatch(BaseModel):
    """Result of resolving a slug to an entity."""

    kind: EntityKind
    entity_id: str
    slug: str

    model_config = ConfigDict(frozen=True)

    @property
    def ref(self) -> EntityRef:
        return EntityRef(kind=self.kind, id=self.entity_id)
