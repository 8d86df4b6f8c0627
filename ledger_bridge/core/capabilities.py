"""Capability interfaces the host application provides to the migration pipeline.

These are structural protocols: any object with the right methods
qualifies, no subclassing required.
"""

from collections.abc import AsyncIterator
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

from ..models.ledger import Account, Balance, Identity, LedgerSpec, TargetLedger


@runtime_checkable
class SourceProvider(Protocol):
    """Balance-tracking provider capability (legacy source or the new target)."""

    def provider_name(self) -> str: ...

    def is_enabled(self) -> bool: ...

    def currency_name_singular(self) -> str: ...

    def currency_name_plural(self) -> str: ...

    async def has_account(self, account: Account) -> bool: ...

    async def get_balance(self, account: Account) -> float: ...


class AccountEnumerator(Protocol):
    """Yields every account reference the host knows about."""

    def accounts(self) -> AsyncIterator[Account]: ...


class LedgerStore(Protocol):
    """Target ledger and account persistence."""

    async def find_ledger(self, identifier: str) -> TargetLedger | None: ...

    async def list_ledgers(self) -> list[TargetLedger]: ...

    async def create_ledger(self, spec: LedgerSpec) -> TargetLedger: ...

    async def find_balance(self, account: Account, ledger: TargetLedger) -> Balance | None: ...

    async def find_identity(self, account: Account) -> Identity | None: ...

    async def create_identity(self, account: Account) -> Identity: ...

    async def create_relationship(self, identity: Identity, ledger: TargetLedger) -> Balance: ...

    async def set_balance(self, balance: Balance, amount: float) -> Balance: ...


class Registration(BaseModel):
    """One provider registration held by the provider registry."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    capability: str
    provider: Any
    owner: str
    priority: int


class ProviderRegistry(Protocol):
    """Host registry deciding which provider implementation is active."""

    def unregister_all(self, owner: str) -> None: ...

    def register(self, capability: str, provider: Any, owner: str, priority: int) -> None: ...

    def get_active_registration(self) -> Registration | None: ...
