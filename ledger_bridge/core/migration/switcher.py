"""Provider failover to the target implementation."""

from typing import Any

import structlog

from ...constants import BALANCE_CAPABILITY, OWNER_NAME, PRIORITY_HIGHEST
from ..capabilities import ProviderRegistry
from ..exceptions import SwitchError, SwitchFailure

logger = structlog.get_logger()


class ProviderSwitcher:
    """Replaces the active provider registration with the target implementation.

    Failures never propagate: data correctness and failover are independent,
    so ``switch_to`` reports a bool and logs why it failed.
    """

    def __init__(self, registry: ProviderRegistry, owner: str = OWNER_NAME):
        self.registry = registry
        self.owner = owner
        self.logger = logger.bind(component="provider_switcher")

    def switch_to(self, implementation: Any) -> bool:
        try:
            self._switch(implementation)
        except SwitchError as e:
            self.logger.warning(
                "Data migrated, failover did not occur", reason=e.reason.value, error=str(e)
            )
            return False
        except Exception as e:
            self.logger.warning(
                "Data migrated, failover did not occur", error=str(e), exc_info=True
            )
            return False
        return True

    def _switch(self, implementation: Any) -> None:
        current = self.registry.get_active_registration()
        if current is not None:
            self.logger.info(
                "Unregistering current provider",
                provider=current.provider.provider_name(),
                owner=current.owner,
            )
            try:
                self.registry.unregister_all(current.owner)
            except Exception as e:
                raise SwitchError(
                    SwitchFailure.UNREGISTER_FAILED, f"Failed to unregister {current.owner}: {e}"
                ) from e

        try:
            self.registry.register(BALANCE_CAPABILITY, implementation, self.owner, PRIORITY_HIGHEST)
        except Exception as e:
            raise SwitchError(SwitchFailure.REGISTER_FAILED, f"Failed to register provider: {e}") from e

        expected_name = implementation.provider_name()
        active = self.registry.get_active_registration()
        if active is None or active.provider.provider_name() != expected_name:
            raise SwitchError(
                SwitchFailure.VERIFICATION_FAILED,
                f"Registration verification failed: {expected_name} is not the active provider",
            )
        if not active.provider.is_enabled():
            raise SwitchError(
                SwitchFailure.VERIFICATION_FAILED,
                f"{expected_name} is registered but not enabled",
            )

        self.logger.info(
            "Registered new balance provider",
            provider=expected_name,
            currency=active.provider.currency_name_plural(),
        )
