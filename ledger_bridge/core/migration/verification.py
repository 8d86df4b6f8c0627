"""Post-migration balance verification."""

import random

import structlog

from ...models.ledger import TargetLedger
from ...models.migration import AccountMigrationOutcome, MigrationStats
from ..capabilities import LedgerStore, SourceProvider
from ..exceptions import VerifyError
from .strategies import MigratorStrategy

logger = structlog.get_logger()


class MigrationVerifier:
    """Samples migrated accounts and compares source and target balances."""

    def __init__(
        self,
        store: LedgerStore,
        sample_size: int = 10,
        tolerance: float = 0.01,
        rng: random.Random | None = None,
    ):
        self.store = store
        self.sample_size = sample_size
        self.tolerance = tolerance
        self.rng = rng or random.Random()
        self.logger = logger.bind(component="migration_verifier")

    async def verify(
        self,
        source: SourceProvider,
        target: TargetLedger,
        stats: MigrationStats,
        strategy: MigratorStrategy | None = None,
    ) -> bool:
        """Return True only if every sampled account matches within tolerance.

        Source balances are re-read and passed through the same strategy
        hook and zero clamp the executor applied.
        """
        candidates = stats.successful_outcomes()
        sample_count = min(self.sample_size, stats.succeeded, len(candidates))
        sample = self.rng.sample(candidates, sample_count)

        verified = 0
        for outcome in sample:
            try:
                await self._check(outcome, source, target, strategy)
            except VerifyError as e:
                self.logger.warning("Verification mismatch", account=e.account_id, error=str(e))
                continue
            except Exception as e:
                self.logger.warning(
                    "Verification error", account=outcome.account_id, error=str(e), exc_info=True
                )
                continue
            verified += 1

        success = verified == sample_count
        self.logger.info(
            "Verification finished", verified=verified, sampled=sample_count, success=success
        )
        return success

    async def _check(
        self,
        outcome: AccountMigrationOutcome,
        source: SourceProvider,
        target: TargetLedger,
        strategy: MigratorStrategy | None,
    ) -> None:
        source_balance = float(await source.get_balance(outcome.account))
        if strategy is not None:
            source_balance = await strategy.transform(outcome.account, source_balance)
        source_balance = max(source_balance, 0.0)
        balance = await self.store.find_balance(outcome.account, target)
        if balance is None:
            raise VerifyError(outcome.account_id, source_balance, None)

        if abs(source_balance - balance.amount) < self.tolerance:
            return
        # Kept balances only need to cover the source
        if outcome.kept_existing and balance.amount > source_balance - self.tolerance:
            return
        raise VerifyError(outcome.account_id, source_balance, balance.amount)
