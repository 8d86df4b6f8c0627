"""Enum definitions for LedgerBridge tools and pipeline state."""

from enum import Enum


class MigrationAction(Enum):
    """Actions for the ledger_migration tool."""

    START = "start"
    STATUS = "status"
    SUPPORTED = "supported"
    HISTORY = "history"
    INFO = "info"
    LEDGERS = "ledgers"


class CoordinatorState(Enum):
    """Lifecycle of the migration coordinator."""

    IDLE = "idle"
    RUNNING = "running"


class MigrationPhase(Enum):
    """Pipeline phases in execution order."""

    DETECT = "detect"
    BACKUP = "backup"
    RESOLVE_TARGET = "resolve_target"
    EXECUTE = "execute"
    SWITCH = "switch"
    VERIFY = "verify"
