"""Tests for per-account migration."""

from decimal import Decimal

import pytest

from ledger_bridge.core.memory import InMemoryLedgerStore, StaticSourceProvider
from ledger_bridge.core.migration import MigrationExecutor, MigratorStrategy
from ledger_bridge.models.ledger import Account, LedgerSpec


@pytest.fixture
async def ledger(store):
    return await store.create_ledger(LedgerSpec(identifier="coins"))


@pytest.fixture
def strategy() -> MigratorStrategy:
    return MigratorStrategy("Essentials")


class FlakyStore(InMemoryLedgerStore):
    """Store that refuses writes for selected accounts."""

    def __init__(self, failing: set[str]):
        super().__init__()
        self.failing = failing

    async def set_balance(self, balance, amount):
        if balance.account_id in self.failing:
            raise RuntimeError("constraint violation")
        return await super().set_balance(balance, amount)


class TestMigrationExecutor:
    """Test suite for MigrationExecutor."""

    @pytest.mark.asyncio
    async def test_negative_balance_clamped(self, store, source, ledger, strategy, settings):
        accounts = [Account(account_id="A"), Account(account_id="B")]

        stats = await MigrationExecutor(store, settings).run(accounts, source, ledger, strategy)

        assert stats.processed == 2
        assert stats.succeeded == 2
        assert stats.failed == 0
        assert stats.total_migrated_balance == Decimal("100")
        assert stats.success is True
        assert store.balance_of("A", "coins") == 100.0
        assert store.balance_of("B", "coins") == 0.0

    @pytest.mark.asyncio
    async def test_larger_existing_balance_kept(self, store, ledger, strategy, settings):
        account = Account(account_id="A")
        existing = await store.create_relationship(await store.create_identity(account), ledger)
        await store.set_balance(existing, 150.0)
        source = StaticSourceProvider("Essentials", {"A": 100.0})

        stats = await MigrationExecutor(store, settings).run([account], source, ledger, strategy)

        assert stats.succeeded == 1
        assert store.balance_of("A", "coins") == 150.0
        outcome = stats.successful_outcomes()[0]
        assert outcome.kept_existing is True
        assert outcome.target_balance == 150.0

    @pytest.mark.asyncio
    async def test_smaller_existing_balance_raised(self, store, ledger, strategy, settings):
        account = Account(account_id="A")
        existing = await store.create_relationship(await store.create_identity(account), ledger)
        await store.set_balance(existing, 40.0)
        source = StaticSourceProvider("Essentials", {"A": 100.0})

        stats = await MigrationExecutor(store, settings).run([account], source, ledger, strategy)

        assert store.balance_of("A", "coins") == 100.0
        assert stats.successful_outcomes()[0].kept_existing is False

    @pytest.mark.asyncio
    async def test_second_run_changes_nothing(self, store, source, ledger, strategy, settings):
        accounts = [Account(account_id="A"), Account(account_id="B")]
        executor = MigrationExecutor(store, settings)

        await executor.run(accounts, source, ledger, strategy)
        before = {a.account_id: store.balance_of(a.account_id, "coins") for a in accounts}
        stats = await executor.run(accounts, source, ledger, strategy)
        after = {a.account_id: store.balance_of(a.account_id, "coins") for a in accounts}

        assert before == after
        assert stats.failed == 0

    @pytest.mark.asyncio
    async def test_failing_account_does_not_stop_batch(self, strategy, settings):
        store = FlakyStore({"B"})
        ledger = await store.create_ledger(LedgerSpec(identifier="coins"))
        source = StaticSourceProvider("Essentials", {"A": 10.0, "B": 20.0, "C": 30.0})
        accounts = [Account(account_id=i) for i in "ABC"]

        stats = await MigrationExecutor(store, settings).run(accounts, source, ledger, strategy)

        assert stats.processed == 3
        assert stats.succeeded == 2
        assert stats.failed == 1
        assert stats.success is False
        assert stats.total_migrated_balance == Decimal("40")
        assert "constraint violation" in stats.errors[0]
        assert store.balance_of("C", "coins") == 30.0

    @pytest.mark.asyncio
    async def test_read_failure_recorded(self, store, ledger, strategy, settings):
        class BrokenSource(StaticSourceProvider):
            async def get_balance(self, account):
                raise RuntimeError("timeout")

        source = BrokenSource("Essentials", {"A": 1.0})

        stats = await MigrationExecutor(store, settings).run(
            [Account(account_id="A", name="alice")], source, ledger, strategy
        )

        assert stats.failed == 1
        assert stats.errors == ("Failed to read source balance for alice: timeout",)
        assert store.balance_of("A", "coins") is None

    @pytest.mark.asyncio
    async def test_balance_hook_applied_before_clamp(self, store, ledger, settings):
        async def minus_fifty(account, balance):
            return balance - 50

        strategy = MigratorStrategy("Essentials", balance_hook=minus_fifty)
        source = StaticSourceProvider("Essentials", {"A": 80.0, "B": 20.0})
        accounts = [Account(account_id="A"), Account(account_id="B")]

        stats = await MigrationExecutor(store, settings).run(accounts, source, ledger, strategy)

        assert store.balance_of("A", "coins") == 30.0
        assert store.balance_of("B", "coins") == 0.0
        assert stats.total_migrated_balance == Decimal("30")

    @pytest.mark.asyncio
    async def test_stats_sealed_after_run(self, store, source, ledger, strategy, settings):
        stats = await MigrationExecutor(store, settings).run([], source, ledger, strategy)

        assert stats.sealed is True
        assert stats.processed == 0
        assert stats.success is True
