"""Source provider detection."""

import structlog

from ...models.migration import ProviderHandle
from ..capabilities import ProviderRegistry
from ..exceptions import DetectionError, DetectionFailure
from .strategies import MigratorStrategy, MigratorStrategyRegistry

logger = structlog.get_logger()


class ProviderDetector:
    """Locates the active provider and matches it to a migration strategy. Read-only."""

    def __init__(
        self,
        registry: ProviderRegistry,
        strategies: MigratorStrategyRegistry,
        target_provider_name: str,
    ):
        self.registry = registry
        self.strategies = strategies
        self.target_provider_name = target_provider_name
        self.logger = logger.bind(component="provider_detector")

    def detect(self) -> tuple[ProviderHandle, MigratorStrategy]:
        """Resolve the active provider.

        Returns:
            Tuple of (provider handle, matching strategy)

        Raises:
            DetectionError: no provider, provider is already the target, or unsupported
        """
        registration = self.registry.get_active_registration()
        if registration is None:
            raise DetectionError(DetectionFailure.NO_PROVIDER, "No balance provider found")

        provider = registration.provider
        provider_name = provider.provider_name()

        if provider_name == self.target_provider_name:
            raise DetectionError(
                DetectionFailure.ALREADY_TARGET,
                f"{self.target_provider_name} is already the active balance provider",
                provider_name=provider_name,
            )

        strategy = self.strategies.find(provider_name)
        if strategy is None:
            raise DetectionError(
                DetectionFailure.UNSUPPORTED,
                f"Unsupported balance provider: {provider_name}",
                provider_name=provider_name,
            )

        if not strategy.validate(provider):
            raise DetectionError(
                DetectionFailure.UNSUPPORTED,
                f"Balance provider {provider_name} failed {strategy.name} validation",
                provider_name=provider_name,
            )

        self.logger.info(
            "Detected balance provider",
            provider=provider_name,
            strategy=strategy.name,
            owner=registration.owner,
        )
        return ProviderHandle(name=provider_name, provider=provider, strategy_name=strategy.name), strategy
