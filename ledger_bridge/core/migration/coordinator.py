"""Single-flight migration pipeline.

Runs Detect, Backup, ResolveTarget, Execute, Switch and Verify strictly in
order and keeps the last result for status queries.
"""

import asyncio
import random
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

import structlog

from ...models.enums import CoordinatorState, MigrationPhase
from ...models.ledger import Account, TargetLedger
from ...models.migration import CoordinatorStatus, MigrationResult
from ..backup import BackupSnapshotter
from ..capabilities import AccountEnumerator, LedgerStore, ProviderRegistry, SourceProvider
from ..exceptions import BackupError, DetectionError, TargetResolutionError
from ..ledger_provider import LedgerProvider
from ..settings import MigrationSettings
from .detector import ProviderDetector
from .executor import MigrationExecutor
from .strategies import MigratorStrategyRegistry, default_registry
from .switcher import ProviderSwitcher
from .target import TargetLedgerResolver
from .verification import MigrationVerifier

logger = structlog.get_logger()

MIGRATION_IN_PROGRESS = "Migration already in progress"

ProviderFactory = Callable[[LedgerStore, TargetLedger], Any]


class MigrationCoordinator:
    """Orchestrates one migration at a time.

    The running flag and the last result are instance state guarded by a
    lock, so concurrent ``start`` and ``status`` calls are safe.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        store: LedgerStore,
        enumerator: AccountEnumerator,
        settings: MigrationSettings | None = None,
        strategies: MigratorStrategyRegistry | None = None,
        provider_factory: ProviderFactory | None = None,
        backup_dir: Path | str | None = None,
        rng: random.Random | None = None,
    ):
        self.registry = registry
        self.store = store
        self.enumerator = enumerator
        self.settings = settings or MigrationSettings()
        self.strategies = strategies or default_registry()
        self.provider_factory = provider_factory or self._default_provider
        self.logger = logger.bind(component="migration_coordinator")

        self.detector = ProviderDetector(
            registry, self.strategies, self.settings.target_provider_name
        )
        self.backup = BackupSnapshotter(backup_dir or self.settings.backup_dir)
        self.resolver = TargetLedgerResolver(store, self.settings)
        self.executor = MigrationExecutor(store, self.settings)
        self.switcher = ProviderSwitcher(registry)
        self.verifier = MigrationVerifier(
            store,
            sample_size=self.settings.verify_sample_size,
            tolerance=self.settings.balance_tolerance,
            rng=rng,
        )

        self._lock = threading.Lock()
        self._running = False
        self._last_result: MigrationResult | None = None
        self._tasks: set[asyncio.Task] = set()

    def _default_provider(self, store: LedgerStore, ledger: TargetLedger) -> LedgerProvider:
        return LedgerProvider(store, ledger, name=self.settings.target_provider_name)

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    @property
    def last_result(self) -> MigrationResult | None:
        with self._lock:
            return self._last_result

    def status(self) -> CoordinatorStatus:
        with self._lock:
            state = CoordinatorState.RUNNING if self._running else CoordinatorState.IDLE
            return CoordinatorStatus(state=state, last_result=self._last_result)

    def supported_providers(self) -> list[str]:
        return self.strategies.names()

    async def available_ledgers(self) -> list[TargetLedger]:
        return await self.store.list_ledgers()

    def start(
        self,
        create_backup: bool = True,
        switch_provider: bool = False,
        target_identifier: str | None = None,
    ) -> "asyncio.Future[MigrationResult]":
        """Start a migration in the background.

        Must be called from a running event loop. Returns immediately; the
        returned future resolves to the run's result. While a run is active
        the future is already resolved with a failed result.
        """
        loop = asyncio.get_running_loop()
        with self._lock:
            if self._running:
                self.logger.warning("Migration start rejected", reason=MIGRATION_IN_PROGRESS)
                rejected: asyncio.Future[MigrationResult] = loop.create_future()
                rejected.set_result(MigrationResult.error(MIGRATION_IN_PROGRESS, rejected=True))
                return rejected
            self._running = True

        task = loop.create_task(self._run(create_backup, switch_provider, target_identifier))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def run(
        self,
        create_backup: bool = True,
        switch_provider: bool = False,
        target_identifier: str | None = None,
    ) -> MigrationResult:
        """Start a migration and wait for its result."""
        return await self.start(create_backup, switch_provider, target_identifier)

    async def _run(
        self, create_backup: bool, switch_provider: bool, target_identifier: str | None
    ) -> MigrationResult:
        result: MigrationResult | None = None
        try:
            result = await self._pipeline(create_backup, switch_provider, target_identifier)
        except Exception as e:
            self.logger.error("Migration failed", error=str(e), exc_info=True)
            result = MigrationResult.error(f"Migration failed: {e}")
        finally:
            if result is None:
                result = MigrationResult.error("Migration failed: run was interrupted")
            with self._lock:
                self._last_result = result
                self._running = False
        return result

    async def _pipeline(
        self, create_backup: bool, switch_provider: bool, target_identifier: str | None
    ) -> MigrationResult:
        warnings: list[str] = []
        self.logger.info(
            "Starting migration",
            create_backup=create_backup,
            switch_provider=switch_provider,
            target=target_identifier,
        )

        self._phase(MigrationPhase.DETECT)
        try:
            handle, strategy = self.detector.detect()
        except DetectionError as e:
            self.logger.error("Detection failed", reason=e.reason.value, error=str(e))
            return MigrationResult.error(
                str(e), source_provider=e.provider_name, failed_phase=MigrationPhase.DETECT
            )
        source = handle.source

        backup_path = None
        if create_backup:
            self._phase(MigrationPhase.BACKUP)
            try:
                snapshot = await self.backup.snapshot(handle, self.enumerator)
            except BackupError as e:
                self.logger.error("Backup failed, aborting migration", error=str(e))
                return MigrationResult.error(
                    f"Backup failed: {e}",
                    source_provider=handle.name,
                    failed_phase=MigrationPhase.BACKUP,
                )
            backup_path = snapshot.path

        self._phase(MigrationPhase.RESOLVE_TARGET)
        try:
            target = await self.resolver.resolve(source, target_identifier, warnings)
        except TargetResolutionError as e:
            self.logger.error("Target ledger resolution failed", error=str(e))
            return MigrationResult.error(
                str(e),
                source_provider=handle.name,
                warnings=tuple(warnings),
                backup_path=backup_path,
                failed_phase=MigrationPhase.RESOLVE_TARGET,
            )

        self._phase(MigrationPhase.EXECUTE)
        accounts = await self._collect_accounts(source)
        stats = await self.executor.run(accounts, source, target, strategy)

        switched = None
        if switch_provider:
            if stats.success:
                self._phase(MigrationPhase.SWITCH)
                switched = self.switcher.switch_to(self.provider_factory(self.store, target))
                if not switched:
                    warnings.append("Data migrated, but the provider switch did not complete")
            else:
                switched = False
                message = "Provider switch skipped because some accounts failed to migrate"
                self.logger.warning(message, failed=stats.failed)
                warnings.append(message)

        self._phase(MigrationPhase.VERIFY)
        verified = await self.verifier.verify(source, target, stats, strategy)

        success = stats.success and verified
        error_message = None
        if not verified:
            error_message = "Migration verification failed"
        elif not stats.success:
            error_message = f"{stats.failed} account(s) failed to migrate"

        self.logger.info(
            "Migration finished",
            success=success,
            source_provider=handle.name,
            ledger=target.identifier,
            processed=stats.processed,
            failed=stats.failed,
            verified=verified,
        )
        return MigrationResult(
            success=success,
            source_provider=handle.name,
            stats=stats,
            error_message=error_message,
            warnings=tuple(warnings),
            verified=verified,
            provider_switched=switched,
            backup_path=backup_path,
        )

    async def _collect_accounts(self, source: SourceProvider) -> list[Account]:
        accounts = []
        async for account in self.enumerator.accounts():
            if await source.has_account(account):
                accounts.append(account)
        return accounts

    def _phase(self, phase: MigrationPhase) -> None:
        self.logger.debug("Entering migration phase", phase=phase.value)
