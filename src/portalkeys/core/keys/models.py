"""
Key registry models.

A KeyRegistryEntry binds a globally unique key (e.g. ACME) to a scope and
carries the counters slugs are numbered from:

    key_registry
    ├── key                  ACME (unique across the registry)
    ├── scope                organization [+ sub-unit]
    ├── is_default/is_active which row a scope uses, and whether it may mint
    └── last_*_number        one monotonic counter per entity kind
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from portalkeys.core.db.schema import COUNTER_COLUMNS


class Scope(BaseModel):
    """
    What a key is minted for: an organization, optionally narrowed to a sub-unit.

    Example:
        >>> str(Scope(organization_id="org_1", sub_unit_id="dept_2"))
        'org_1/dept_2'
    """

    organization_id: str
    sub_unit_id: str | None = None

    model_config = ConfigDict(frozen=True)

    def organization_only(self) -> "Scope":
        """Return the same scope without the sub-unit."""
        return Scope(organization_id=self.organization_id)

    def __str__(self) -> str:
        if self.sub_unit_id:
            return f"{self.organization_id}/{self.sub_unit_id}"
        return self.organization_id


class Actor(BaseModel):
    """The authenticated caller, as resolved by the surrounding application."""

    id: str
    role: str

    model_config = ConfigDict(frozen=True)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class KeyRegistryEntry(BaseModel):
    """One registry row."""

    id: int
    key: str
    description: str | None = None
    organization_id: str
    sub_unit_id: str | None = None
    is_default: bool = False
    is_active: bool = True
    last_task_number: int = Field(default=0, ge=0)
    last_sprint_number: int = Field(default=0, ge=0)
    last_project_number: int = Field(default=0, ge=0)
    created_by: str | None = None
    created_at: datetime
    updated_at: datetime

    @property
    def scope(self) -> Scope:
        return Scope(organization_id=self.organization_id, sub_unit_id=self.sub_unit_id)

    def counter_for(self, kind: str) -> int:
        """
        Return the last number handed out for an entity kind.

        Raises:
            KeyError: If kind is not task, sprint, or project
        """
        value: int = getattr(self, COUNTER_COLUMNS[kind])
        return value

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "KeyRegistryEntry":
        """Build an entry from a key_registry row (SQLite stores booleans as ints)."""
        data = dict(row)
        data["is_default"] = bool(data.get("is_default"))
        data["is_active"] = bool(data.get("is_active"))
        return cls.model_validate(data)
