"""Tests for target ledger resolution."""

from unittest.mock import AsyncMock

import pytest

from ledger_bridge.core.exceptions import TargetResolutionError
from ledger_bridge.core.memory import InMemoryLedgerStore
from ledger_bridge.core.migration import TargetLedgerResolver
from ledger_bridge.models.ledger import LedgerSpec


class TestTargetLedgerResolver:
    """Test suite for TargetLedgerResolver."""

    @pytest.mark.asyncio
    async def test_creates_ledger_when_none_exist(self, store, source, settings):
        warnings: list[str] = []

        ledger = await TargetLedgerResolver(store, settings).resolve(source, warnings=warnings)

        assert ledger.identifier == "migrated-currency"
        assert ledger.symbol == "$"
        assert ledger.icon == "GOLD_INGOT"
        assert ledger.suffix == " dollar"
        assert await store.find_ledger("migrated-currency") == ledger
        assert warnings == []

    @pytest.mark.asyncio
    async def test_explicit_identifier_found(self, source, settings):
        store = InMemoryLedgerStore([LedgerSpec(identifier="coins"), LedgerSpec(identifier="gems")])
        warnings: list[str] = []

        ledger = await TargetLedgerResolver(store, settings).resolve(source, "gems", warnings)

        assert ledger.identifier == "gems"
        assert warnings == []

    @pytest.mark.asyncio
    async def test_explicit_identifier_missing_falls_back_with_warning(self, source, settings):
        store = InMemoryLedgerStore([LedgerSpec(identifier="coins")])
        warnings: list[str] = []

        ledger = await TargetLedgerResolver(store, settings).resolve(source, "gems", warnings)

        assert ledger.identifier == "coins"
        assert len(warnings) == 2
        assert "'gems' not found" in warnings[0]
        assert "merged" in warnings[1]

    @pytest.mark.asyncio
    async def test_explicit_identifier_missing_is_created(self, store, source, settings):
        warnings: list[str] = []

        ledger = await TargetLedgerResolver(store, settings).resolve(source, "gems", warnings)

        assert ledger.identifier == "gems"
        assert len(warnings) == 1

    @pytest.mark.asyncio
    async def test_existing_ledger_reused_with_warning(self, source, settings):
        store = InMemoryLedgerStore([LedgerSpec(identifier="coins")])
        warnings: list[str] = []

        ledger = await TargetLedgerResolver(store, settings).resolve(source, warnings=warnings)

        assert ledger.identifier == "coins"
        assert warnings and "coins" in warnings[0]

    @pytest.mark.asyncio
    async def test_store_failure_wrapped(self, source, settings):
        store = AsyncMock()
        store.list_ledgers.side_effect = RuntimeError("database locked")

        with pytest.raises(TargetResolutionError, match="database locked"):
            await TargetLedgerResolver(store, settings).resolve(source)

    @pytest.mark.asyncio
    async def test_create_returning_nothing(self, source, settings):
        store = AsyncMock()
        store.list_ledgers.return_value = []
        store.create_ledger.return_value = None

        with pytest.raises(TargetResolutionError, match="Failed to save new ledger"):
            await TargetLedgerResolver(store, settings).resolve(source)
