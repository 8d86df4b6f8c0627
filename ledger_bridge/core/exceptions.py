"""Core exceptions for LedgerBridge migration operations."""

from enum import Enum


class LedgerBridgeError(Exception):
    """Base exception for LedgerBridge operations."""


class ConfigurationError(LedgerBridgeError):
    """Configuration validation or loading failed."""


class DetectionFailure(Enum):
    """Why the active provider could not be used as a migration source."""

    NO_PROVIDER = "no_provider"
    ALREADY_TARGET = "already_target"
    UNSUPPORTED = "unsupported"


class DetectionError(LedgerBridgeError):
    """No usable source provider was detected."""

    def __init__(self, reason: DetectionFailure, message: str, provider_name: str | None = None):
        super().__init__(message)
        self.reason = reason
        self.provider_name = provider_name


class BackupError(LedgerBridgeError):
    """Backup snapshot could not be written."""


class TargetResolutionError(LedgerBridgeError):
    """Target ledger could not be found or created."""


class AccountFailure(Enum):
    """Per-account failure categories."""

    READ_FAILED = "read_failed"
    WRITE_FAILED = "write_failed"
    EXCEPTION = "exception"


class AccountMigrationError(LedgerBridgeError):
    """A single account could not be migrated. Never escapes the executor."""

    def __init__(self, reason: AccountFailure, account_id: str, message: str):
        super().__init__(message)
        self.reason = reason
        self.account_id = account_id


class SwitchFailure(Enum):
    """Provider failover failure categories."""

    UNREGISTER_FAILED = "unregister_failed"
    REGISTER_FAILED = "register_failed"
    VERIFICATION_FAILED = "verification_failed"


class SwitchError(LedgerBridgeError):
    """Provider failover failed. Degrades to a warning."""

    def __init__(self, reason: SwitchFailure, message: str):
        super().__init__(message)
        self.reason = reason


class VerifyError(LedgerBridgeError):
    """A sampled account balance did not match after migration."""

    def __init__(self, account_id: str, source_balance: float, target_balance: float | None):
        super().__init__(
            f"Balance mismatch for {account_id}: source={source_balance} target={target_balance}"
        )
        self.account_id = account_id
        self.source_balance = source_balance
        self.target_balance = target_balance
