"""Bulk migration and backfill of keys and slugs."""

from portalkeys.core.migration.models import MigrationResult
from portalkeys.core.migration.service import MigrationService

__all__ = ["MigrationResult", "MigrationService"]
