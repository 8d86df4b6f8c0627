"""Per-account balance migration with conflict resolution."""

from collections.abc import Iterable

import structlog

from ...models.ledger import Account, Balance, TargetLedger
from ...models.migration import AccountMigrationOutcome, MigrationStats
from ..capabilities import LedgerStore, SourceProvider
from ..exceptions import AccountFailure, AccountMigrationError
from ..settings import MigrationSettings
from .strategies import MigratorStrategy

logger = structlog.get_logger()


class MigrationExecutor:
    """Transforms and loads balances one account at a time.

    Accounts are awaited strictly in turn; the store is not assumed to be
    safe under concurrent writes from this pipeline.
    """

    def __init__(self, store: LedgerStore, settings: MigrationSettings):
        self.store = store
        self.settings = settings
        self.logger = logger.bind(component="migration_executor")

    async def run(
        self,
        accounts: Iterable[Account],
        source: SourceProvider,
        target: TargetLedger,
        strategy: MigratorStrategy,
    ) -> MigrationStats:
        """Migrate every account and return sealed statistics.

        A failing account is recorded and the batch continues.
        """
        accounts = list(accounts)
        stats = MigrationStats(total_accounts=len(accounts), max_errors=self.settings.max_error_messages)
        self.logger.info("Found accounts to migrate", total=stats.total_accounts, ledger=target.identifier)

        for account in accounts:
            stats.record(await self._migrate_one(account, source, target, strategy))

            if stats.processed % self.settings.progress_interval == 0:
                self.logger.info(
                    "Migration progress",
                    processed=stats.processed,
                    total=stats.total_accounts,
                    failed=stats.failed,
                )

        stats.seal()
        self.logger.info(
            "Data migration finished",
            processed=stats.processed,
            succeeded=stats.succeeded,
            failed=stats.failed,
            total_balance=str(stats.total_migrated_balance),
        )
        return stats

    async def _migrate_one(
        self,
        account: Account,
        source: SourceProvider,
        target: TargetLedger,
        strategy: MigratorStrategy,
    ) -> AccountMigrationOutcome:
        source_balance = 0.0
        try:
            source_balance = await self._read_source_balance(account, source, strategy)
            target_balance, kept_existing = await self._load_balance(account, target, source_balance)
        except AccountMigrationError as e:
            self.logger.warning(
                "Failed to migrate account",
                account=account.account_id,
                reason=e.reason.value,
                error=str(e),
            )
            return AccountMigrationOutcome(
                account=account, success=False, error=str(e), source_balance=source_balance
            )
        except Exception as e:
            self.logger.warning(
                "Failed to migrate account", account=account.account_id, error=str(e), exc_info=True
            )
            return AccountMigrationOutcome(
                account=account,
                success=False,
                error=f"Error migrating {self._label(account)}: {e}",
                source_balance=source_balance,
            )

        return AccountMigrationOutcome(
            account=account,
            success=True,
            source_balance=source_balance,
            target_balance=target_balance,
            kept_existing=kept_existing,
        )

    async def _read_source_balance(
        self, account: Account, source: SourceProvider, strategy: MigratorStrategy
    ) -> float:
        try:
            balance = float(await source.get_balance(account))
        except Exception as e:
            raise AccountMigrationError(
                AccountFailure.READ_FAILED,
                account.account_id,
                f"Failed to read source balance for {self._label(account)}: {e}",
            ) from e

        balance = await strategy.transform(account, balance)

        if balance < 0:
            self.logger.warning(
                "Negative source balance clamped to zero", account=account.account_id, balance=balance
            )
            balance = 0.0
        return balance

    async def _load_balance(
        self, account: Account, target: TargetLedger, source_balance: float
    ) -> tuple[float, bool]:
        """Write the balance to the target ledger.

        Returns:
            Tuple of (balance now held by the target, whether an existing balance was kept)
        """
        existing = await self.store.find_balance(account, target)
        if existing is not None:
            if source_balance > existing.amount:
                self.logger.info(
                    "Raising existing balance to source balance",
                    account=account.account_id,
                    existing=existing.amount,
                    source=source_balance,
                )
                await self._write(existing, source_balance, account)
                return source_balance, False

            self.logger.info(
                "Keeping existing balance",
                account=account.account_id,
                existing=existing.amount,
                source=source_balance,
            )
            return existing.amount, True

        identity = await self.store.find_identity(account)
        if identity is None:
            identity = await self.store.create_identity(account)
        balance = await self.store.create_relationship(identity, target)
        await self._write(balance, source_balance, account)
        self.logger.debug("Migrated account", account=account.account_id, balance=source_balance)
        return source_balance, False

    async def _write(self, balance: Balance, amount: float, account: Account) -> None:
        try:
            await self.store.set_balance(balance, amount)
        except Exception as e:
            raise AccountMigrationError(
                AccountFailure.WRITE_FAILED,
                account.account_id,
                f"Failed to save migrated balance for {self._label(account)}: {e}",
            ) from e

    @staticmethod
    def _label(account: Account) -> str:
        return account.name or account.account_id
