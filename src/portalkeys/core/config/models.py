"""
Configuration data models for portalkeys.

These models define the structure of .portalkeys.json and
~/.config/portalkeys/config.json files, with validation and type safety
via Pydantic.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ScopingMode = Literal["organization", "sub_unit"]
EmptyNamePolicy = Literal["error", "timestamp"]


class KeysConfig(BaseModel):
    """
    Key derivation and registry settings.

    Exactly one scoping mode applies per deployment: either every key
    belongs to an organization, or keys are narrowed to an
    organization + sub-unit pair.
    """

    scoping: ScopingMode = Field(
        default="organization",
        description="Whether registry rows are scoped per organization or per sub-unit",
    )
    empty_name_policy: EmptyNamePolicy = Field(
        default="error",
        description=(
            "What to do when a name yields no key candidates: 'error' raises "
            "EmptyNameError, 'timestamp' mints a degraded time-based key"
        ),
    )
    max_suffix_attempts: int = Field(
        default=999,
        ge=1,
        le=9999,
        description="Ceiling on numeric suffixes tried before KeyExhaustionError",
    )
    auto_create_keys: bool = Field(
        default=True,
        description="Create a registry row on first slug assignment in a new scope",
    )


class SequenceConfig(BaseModel):
    """
    Optimistic concurrency settings for slug assignment.

    The retry loop is bounded so contention surfaces as an error
    instead of a hang.
    """

    max_retries: int = Field(
        default=8,
        ge=0,
        le=16,
        description="Retries after a lost counter race before ConcurrentAssignmentError",
    )
    retry_delay_ms: int = Field(
        default=10,
        ge=0,
        description="Base delay between retries in milliseconds",
    )
    retry_backoff: float = Field(
        default=1.5,
        ge=1.0,
        description="Exponential backoff multiplier applied per retry",
    )


class StoreConfig(BaseModel):
    """SQLite store location and connection settings."""

    db_path: str = Field(
        default=".portalkeys/keys.db",
        description="Path to the SQLite database (relative paths resolve from cwd)",
    )
    busy_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="How long a connection waits on a locked database",
    )


class PortalKeysConfig(BaseModel):
    """
    Top-level portalkeys configuration.

    Loaded from (lowest to highest precedence): defaults, user config,
    project config, environment variables.
    """

    model_config = ConfigDict(extra="ignore")

    keys: KeysConfig = Field(default_factory=KeysConfig)
    sequence: SequenceConfig = Field(default_factory=SequenceConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
