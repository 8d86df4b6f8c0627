"""Service layer for LedgerBridge business logic."""

from .migration_service import MigrationService

__all__ = ["MigrationService"]
