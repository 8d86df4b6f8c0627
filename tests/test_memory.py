"""Tests for the in-memory host implementations."""

import pytest
import yaml

from ledger_bridge.constants import BALANCE_CAPABILITY, PRIORITY_HIGH, PRIORITY_NORMAL
from ledger_bridge.core.exceptions import ConfigurationError
from ledger_bridge.core.memory import (
    InMemoryLedgerStore,
    InMemoryProviderRegistry,
    StaticAccountEnumerator,
    StaticSourceProvider,
)
from ledger_bridge.models.ledger import Account, Balance, LedgerSpec


class TestInMemoryProviderRegistry:
    def test_highest_priority_wins(self):
        registry = InMemoryProviderRegistry()
        low = StaticSourceProvider("Essentials")
        high = StaticSourceProvider("CMI")
        registry.register(BALANCE_CAPABILITY, low, "Essentials", PRIORITY_NORMAL)
        registry.register(BALANCE_CAPABILITY, high, "CMI", PRIORITY_HIGH)

        assert registry.get_active_registration().provider is high

    def test_earliest_registration_wins_ties(self):
        registry = InMemoryProviderRegistry()
        first = StaticSourceProvider("Essentials")
        second = StaticSourceProvider("CMI")
        registry.register(BALANCE_CAPABILITY, first, "Essentials", PRIORITY_NORMAL)
        registry.register(BALANCE_CAPABILITY, second, "CMI", PRIORITY_NORMAL)

        assert registry.get_active_registration().provider is first

    def test_other_capabilities_ignored(self):
        registry = InMemoryProviderRegistry()
        registry.register("permissions", StaticSourceProvider("Perms"), "Perms", PRIORITY_HIGH)

        assert registry.get_active_registration() is None

    def test_unregister_all_by_owner(self):
        registry = InMemoryProviderRegistry()
        registry.register(BALANCE_CAPABILITY, StaticSourceProvider("A"), "owner-a", PRIORITY_NORMAL)
        registry.register(BALANCE_CAPABILITY, StaticSourceProvider("B"), "owner-b", PRIORITY_NORMAL)

        registry.unregister_all("owner-a")

        assert [r.owner for r in registry.registrations] == ["owner-b"]


class TestInMemoryLedgerStore:
    @pytest.mark.asyncio
    async def test_ledgers_keep_creation_order(self):
        store = InMemoryLedgerStore([LedgerSpec(identifier="gold")])
        await store.create_ledger(LedgerSpec(identifier="silver"))

        ledgers = await store.list_ledgers()

        assert [ledger.identifier for ledger in ledgers] == ["gold", "silver"]
        assert [ledger.ledger_id for ledger in ledgers] == [1, 2]

    @pytest.mark.asyncio
    async def test_duplicate_ledger_rejected(self):
        store = InMemoryLedgerStore([LedgerSpec(identifier="gold")])

        with pytest.raises(ValueError, match="already exists"):
            await store.create_ledger(LedgerSpec(identifier="gold"))

    @pytest.mark.asyncio
    async def test_relationship_is_reused(self):
        store = InMemoryLedgerStore()
        ledger = await store.create_ledger(LedgerSpec(identifier="gold"))
        identity = await store.create_identity(Account(account_id="A", name="alice"))

        first = await store.create_relationship(identity, ledger)
        await store.set_balance(first, 5.0)
        second = await store.create_relationship(identity, ledger)

        assert second.amount == 5.0
        assert (await store.find_identity(Account(account_id="A"))).name == "alice"

    @pytest.mark.asyncio
    async def test_set_balance_unknown_ledger(self):
        store = InMemoryLedgerStore()

        with pytest.raises(KeyError):
            await store.set_balance(Balance(account_id="A", ledger_identifier="nope"), 1.0)


class TestStaticSourceProvider:
    @pytest.mark.asyncio
    async def test_balances(self):
        source = StaticSourceProvider("Essentials", {"A": 3.0})

        assert await source.has_account(Account(account_id="A")) is True
        assert await source.has_account(Account(account_id="B")) is False
        assert await source.get_balance(Account(account_id="B")) == 0.0

    def test_from_plain_mapping(self, tmp_path):
        path = tmp_path / "balances.yml"
        path.write_text("A: 10\nB: 2.5\n")

        source = StaticSourceProvider.from_file("Essentials", path, currency_singular="Coin")

        assert source.balances == {"A": 10.0, "B": 2.5}
        assert source.currency_name_singular() == "Coin"

    def test_from_backup_artifact(self, tmp_path):
        path = tmp_path / "balance-backup-1.yml"
        path.write_text(
            yaml.safe_dump({"version": "1", "provider": "Essentials", "balances": {"A": 7.0}})
        )

        source = StaticSourceProvider.from_file("Essentials", path)

        assert source.balances == {"A": 7.0}

    @pytest.mark.parametrize(
        "content",
        ["- a\n- b\n", "A: lots\n", "key: [unclosed\n"],
    )
    def test_invalid_files(self, tmp_path, content):
        path = tmp_path / "balances.yml"
        path.write_text(content)

        with pytest.raises(ConfigurationError):
            StaticSourceProvider.from_file("Essentials", path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            StaticSourceProvider.from_file("Essentials", tmp_path / "absent.yml")


@pytest.mark.asyncio
async def test_enumerator_accepts_ids_and_accounts():
    enumerator = StaticAccountEnumerator(["A", Account(account_id="B", name="bob")])

    accounts = [account async for account in enumerator.accounts()]

    assert [a.account_id for a in accounts] == ["A", "B"]
    assert accounts[1].name == "bob"
