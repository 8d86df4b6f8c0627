"""Data models for LedgerBridge."""

from .enums import CoordinatorState, MigrationAction, MigrationPhase  # noqa: F401
from .ledger import Account, Balance, Identity, LedgerSpec, TargetLedger  # noqa: F401
from .migration import (  # noqa: F401
    AccountMigrationOutcome,
    BackupSnapshot,
    CoordinatorStatus,
    MigrationResult,
    MigrationStats,
    ProviderHandle,
)
from .params import LedgerMigrationParams  # noqa: F401

__all__ = [
    # Enums
    "CoordinatorState",
    "MigrationAction",
    "MigrationPhase",
    # Ledger models
    "Account",
    "Balance",
    "Identity",
    "LedgerSpec",
    "TargetLedger",
    # Pipeline models
    "AccountMigrationOutcome",
    "BackupSnapshot",
    "CoordinatorStatus",
    "MigrationResult",
    "MigrationStats",
    "ProviderHandle",
    # Parameter models
    "LedgerMigrationParams",
]
