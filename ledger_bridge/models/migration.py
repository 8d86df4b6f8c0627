"""Migration pipeline data models."""

from collections.abc import Sequence
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from .enums import CoordinatorState, MigrationPhase
from .ledger import Account

if TYPE_CHECKING:
    from ..core.capabilities import SourceProvider


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ProviderHandle(BaseModel):
    """The detected source provider. Immutable once detected."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    provider: Any = Field(description="Live source provider capability object", exclude=True)
    strategy_name: str

    @property
    def source(self) -> "SourceProvider":
        return self.provider


class BackupSnapshot(BaseModel):
    """Write-once record of every source balance taken before migration."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    source_provider: str
    version: str
    balances: dict[str, float] = Field(default_factory=dict)
    record_count: int
    path: str | None = Field(default=None, description="Where the artifact was written")


class AccountMigrationOutcome(BaseModel):
    """Result of migrating one account. Produced once, never mutated."""

    model_config = ConfigDict(frozen=True)

    account: Account
    success: bool
    error: str | None = None
    source_balance: float = 0.0
    target_balance: float | None = None
    kept_existing: bool = Field(
        default=False, description="A larger pre-existing target balance was retained"
    )

    @property
    def account_id(self) -> str:
        return self.account.account_id


class MigrationStats(BaseModel):
    """Aggregate counters for one Execute phase.

    Mutated only by the executor that owns it; sealed when Execute returns.
    Once sealed, every field assignment raises and the error and outcome
    lists are frozen into tuples.
    ``processed == succeeded + failed`` holds after every recorded outcome.
    """

    total_accounts: int = 0
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    total_migrated_balance: Decimal = Decimal("0")
    errors: Sequence[str] = Field(default_factory=list)
    dropped_errors: int = 0
    max_errors: int = Field(default=100, exclude=True)
    outcomes: Sequence[AccountMigrationOutcome] = Field(default_factory=list, exclude=True)

    _sealed: bool = PrivateAttr(default=False)

    @property
    def success(self) -> bool:
        return self._sealed and self.failed == 0

    @property
    def sealed(self) -> bool:
        return self._sealed

    def seal(self) -> None:
        if self._sealed:
            return
        self.errors = tuple(self.errors)
        self.outcomes = tuple(self.outcomes)
        self._sealed = True

    def __setattr__(self, name: str, value: Any) -> None:
        if not name.startswith("_"):
            self._check_open()
        super().__setattr__(name, value)

    def _check_open(self) -> None:
        if self._sealed:
            raise RuntimeError("MigrationStats is read-only once execution has finished")

    def add_error(self, message: str) -> None:
        self._check_open()
        if len(self.errors) < self.max_errors:
            self.errors.append(message)
        else:
            self.dropped_errors += 1

    def record(self, outcome: AccountMigrationOutcome) -> None:
        """Fold one account outcome into the counters."""
        self._check_open()
        self.outcomes.append(outcome)
        self.processed += 1
        if outcome.success:
            self.succeeded += 1
            self.total_migrated_balance += Decimal(str(outcome.source_balance))
        else:
            self.failed += 1
            self.add_error(outcome.error or f"Failed to migrate account: {outcome.account_id}")

    def successful_outcomes(self) -> list[AccountMigrationOutcome]:
        return [outcome for outcome in self.outcomes if outcome.success]


class MigrationResult(BaseModel):
    """Outcome of one full pipeline run. Immutable once constructed."""

    model_config = ConfigDict(frozen=True)

    success: bool
    source_provider: str | None = None
    stats: MigrationStats | None = None
    error_message: str | None = None
    warnings: tuple[str, ...] = ()
    verified: bool | None = None
    provider_switched: bool | None = None
    backup_path: str | None = None
    failed_phase: MigrationPhase | None = Field(
        default=None, description="Phase whose fatal error aborted the run"
    )
    rejected: bool = Field(
        default=False, description="Start was refused because another run was active"
    )
    completed_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def error(cls, message: str, source_provider: str | None = None, **extra: Any) -> "MigrationResult":
        return cls(success=False, source_provider=source_provider, error_message=message, **extra)


class CoordinatorStatus(BaseModel):
    """Point-in-time view of the coordinator for status queries."""

    model_config = ConfigDict(frozen=True)

    state: CoordinatorState
    last_result: MigrationResult | None = None

    @property
    def running(self) -> bool:
        return self.state is CoordinatorState.RUNNING
