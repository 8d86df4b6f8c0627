"""Tests for provider detection and the strategy registry."""

import pytest

from ledger_bridge.constants import BALANCE_CAPABILITY, PRIORITY_HIGH, PRIORITY_LOW
from ledger_bridge.core.exceptions import DetectionError, DetectionFailure
from ledger_bridge.core.memory import InMemoryProviderRegistry, StaticSourceProvider
from ledger_bridge.core.migration import (
    MigratorStrategy,
    MigratorStrategyRegistry,
    ProviderDetector,
    default_registry,
)
from ledger_bridge.core.settings import TARGET_PROVIDER_NAME
from ledger_bridge.models.ledger import Account


def _registry_with(*providers: StaticSourceProvider, priority: int = PRIORITY_LOW):
    registry = InMemoryProviderRegistry()
    for provider in providers:
        registry.register(BALANCE_CAPABILITY, provider, provider.provider_name(), priority)
    return registry


class TestStrategyRegistry:
    """Test suite for MigratorStrategyRegistry."""

    def test_default_registry_lists_known_providers(self):
        registry = default_registry()

        assert registry.names() == ["BOSEconomy", "CMI", "Essentials", "iConomy", "TNE"]
        assert len(registry) == 5
        assert "TNE" in registry
        assert registry.find("TNE").data_directory == "TheNewEconomy"

    def test_exact_match_wins(self):
        assert default_registry().find("Essentials").name == "Essentials"

    @pytest.mark.parametrize(
        "provider_name,expected",
        [("EssentialsX", "Essentials"), ("cmi-economy", "CMI"), ("iconomy", "iConomy")],
    )
    def test_substring_match_is_case_insensitive(self, provider_name, expected):
        assert default_registry().find(provider_name).name == expected

    def test_unknown_provider(self):
        registry = default_registry()

        assert registry.find("GemsEconomy") is None
        assert registry.find("") is None

    def test_bundled_strategies_only_check_enabled(self):
        registry = default_registry()
        enabled = StaticSourceProvider("Essentials", {"A": 1.0})
        disabled = StaticSourceProvider("Essentials", {"A": 1.0}, enabled=False)

        for name in registry.names():
            strategy = registry.find(name)
            assert strategy.balance_hook is None
            assert strategy.validate(enabled) is True
            assert strategy.validate(disabled) is False

    async def test_transform_without_hook_is_identity(self):
        strategy = MigratorStrategy("Essentials")

        assert await strategy.transform(Account(account_id="A"), 12.5) == 12.5

    async def test_transform_applies_hook(self):
        async def double(account, balance):
            return balance * 2

        strategy = MigratorStrategy("Essentials", balance_hook=double)

        assert await strategy.transform(Account(account_id="A"), 12.5) == 25.0


class TestProviderDetector:
    """Test suite for ProviderDetector."""

    def _detector(self, registry, strategies=None):
        return ProviderDetector(registry, strategies or default_registry(), TARGET_PROVIDER_NAME)

    def test_detects_supported_provider(self):
        source = StaticSourceProvider("Essentials")
        handle, strategy = self._detector(_registry_with(source)).detect()

        assert handle.name == "Essentials"
        assert handle.source is source
        assert handle.strategy_name == "Essentials"
        assert strategy.name == "Essentials"

    def test_highest_priority_provider_is_used(self):
        registry = _registry_with(StaticSourceProvider("iConomy"))
        registry.register(
            BALANCE_CAPABILITY, StaticSourceProvider("CMI"), "CMI", PRIORITY_HIGH
        )

        handle, _ = self._detector(registry).detect()

        assert handle.name == "CMI"

    def test_no_provider(self):
        with pytest.raises(DetectionError) as exc_info:
            self._detector(InMemoryProviderRegistry()).detect()

        assert exc_info.value.reason is DetectionFailure.NO_PROVIDER

    def test_target_already_active(self):
        registry = _registry_with(StaticSourceProvider(TARGET_PROVIDER_NAME))

        with pytest.raises(DetectionError) as exc_info:
            self._detector(registry).detect()

        assert exc_info.value.reason is DetectionFailure.ALREADY_TARGET
        assert exc_info.value.provider_name == TARGET_PROVIDER_NAME

    def test_unsupported_provider(self):
        registry = _registry_with(StaticSourceProvider("GemsEconomy"))

        with pytest.raises(DetectionError) as exc_info:
            self._detector(registry).detect()

        assert exc_info.value.reason is DetectionFailure.UNSUPPORTED
        assert "GemsEconomy" in str(exc_info.value)

    def test_disabled_provider_fails_validation(self):
        registry = _registry_with(StaticSourceProvider("Essentials", enabled=False))

        with pytest.raises(DetectionError) as exc_info:
            self._detector(registry).detect()

        assert exc_info.value.reason is DetectionFailure.UNSUPPORTED

    def test_custom_validation_predicate(self):
        strategies = MigratorStrategyRegistry(
            [MigratorStrategy("Essentials", validate=lambda provider: False)]
        )
        registry = _registry_with(StaticSourceProvider("Essentials"))

        with pytest.raises(DetectionError):
            self._detector(registry, strategies).detect()
