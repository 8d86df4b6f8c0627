"""Name-keyed table of known source providers."""

from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field

from ...models.ledger import Account
from ..capabilities import SourceProvider

BalanceHook = Callable[[Account, float], Awaitable[float]]


def _provider_enabled(provider: SourceProvider) -> bool:
    return provider.is_enabled()


@dataclass(frozen=True)
class MigratorStrategy:
    """How to treat one known source provider.

    Every bundled strategy is a plain balance copy whose validation predicate
    only checks that the provider is enabled.
    """

    name: str
    data_directory: str | None = None
    validate: Callable[[SourceProvider], bool] = field(default=_provider_enabled)
    balance_hook: BalanceHook | None = None

    async def transform(self, account: Account, balance: float) -> float:
        if self.balance_hook is None:
            return balance
        return await self.balance_hook(account, balance)


class MigratorStrategyRegistry:
    """Looks strategies up by exact name, then by case-insensitive substring."""

    def __init__(self, strategies: Iterable[MigratorStrategy] = ()):
        self._strategies: dict[str, MigratorStrategy] = {}
        for strategy in strategies:
            self.register(strategy)

    def register(self, strategy: MigratorStrategy) -> None:
        self._strategies[strategy.name] = strategy

    def names(self) -> list[str]:
        return sorted(self._strategies, key=str.lower)

    def __len__(self) -> int:
        return len(self._strategies)

    def __contains__(self, name: object) -> bool:
        return name in self._strategies

    def find(self, provider_name: str) -> MigratorStrategy | None:
        strategy = self._strategies.get(provider_name)
        if strategy is not None:
            return strategy

        # Fuzzy match for renamed/versioned providers, e.g. "EssentialsX" or "CMI-Economy"
        wanted = provider_name.lower()
        if not wanted:
            return None
        for name, candidate in self._strategies.items():
            known = name.lower()
            if known in wanted or wanted in known:
                return candidate
        return None


def default_registry() -> MigratorStrategyRegistry:
    """Registry of the legacy providers supported out of the box."""
    return MigratorStrategyRegistry(
        [
            MigratorStrategy("Essentials", data_directory="Essentials"),
            MigratorStrategy("iConomy", data_directory="iConomy"),
            MigratorStrategy("BOSEconomy", data_directory="BOSEconomy"),
            MigratorStrategy("CMI", data_directory="CMI"),
            MigratorStrategy("TNE", data_directory="TheNewEconomy"),
        ]
    )
