"""Balance migration pipeline."""

from .coordinator import MIGRATION_IN_PROGRESS, MigrationCoordinator
from .detector import ProviderDetector
from .executor import MigrationExecutor
from .strategies import MigratorStrategy, MigratorStrategyRegistry, default_registry
from .switcher import ProviderSwitcher
from .target import TargetLedgerResolver
from .verification import MigrationVerifier

__all__ = [
    "MIGRATION_IN_PROGRESS",
    "MigrationCoordinator",
    "MigrationExecutor",
    "MigrationVerifier",
    "MigratorStrategy",
    "MigratorStrategyRegistry",
    "ProviderDetector",
    "ProviderSwitcher",
    "TargetLedgerResolver",
    "default_registry",
]
