"""Migration result model."""

from pydantic import BaseModel, Field


class MigrationResult(BaseModel):
    """
    Summary of a bulk migration or backfill run.

    Attributes:
        processed: Entities visited
        migrated: Entities that ended up with a slug
        failed: Entities whose assignment raised
        keys_created: Registry rows created during the run
        keys: Scope label (organization name, or "Org/SubUnit") → key
        errors: Entity reference → error message, for failures
    """

    processed: int = 0
    migrated: int = 0
    failed: int = 0
    keys_created: int = 0
    keys: dict[str, str] = Field(default_factory=dict)
    errors: dict[str, str] = Field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.failed == 0
