"""In-memory host capability implementations.

Used by the server's default wiring and by the test suite. A real host
passes its own store, registry and provider objects instead.
"""

from collections.abc import AsyncIterator, Iterable
from pathlib import Path
from typing import Any

import structlog
import yaml

from ..constants import BALANCE_CAPABILITY
from ..models.ledger import Account, Balance, Identity, LedgerSpec, TargetLedger
from .capabilities import Registration
from .exceptions import ConfigurationError

logger = structlog.get_logger()


class InMemoryLedgerStore:
    """Dict-backed ledger store. Ledgers keep their creation order."""

    def __init__(self, ledgers: Iterable[LedgerSpec] = ()):
        self._ledgers: dict[str, TargetLedger] = {}
        self._identities: dict[str, Identity] = {}
        self._balances: dict[tuple[str, str], Balance] = {}
        self._next_ledger_id = 1
        for spec in ledgers:
            self._add_ledger(spec)

    def _add_ledger(self, spec: LedgerSpec) -> TargetLedger:
        ledger = TargetLedger(ledger_id=self._next_ledger_id, **spec.model_dump())
        self._next_ledger_id += 1
        self._ledgers[ledger.identifier] = ledger
        return ledger

    async def find_ledger(self, identifier: str) -> TargetLedger | None:
        return self._ledgers.get(identifier)

    async def list_ledgers(self) -> list[TargetLedger]:
        return list(self._ledgers.values())

    async def create_ledger(self, spec: LedgerSpec) -> TargetLedger:
        if spec.identifier in self._ledgers:
            raise ValueError(f"Ledger '{spec.identifier}' already exists")
        return self._add_ledger(spec)

    async def find_balance(self, account: Account, ledger: TargetLedger) -> Balance | None:
        return self._balances.get((account.account_id, ledger.identifier))

    async def find_identity(self, account: Account) -> Identity | None:
        return self._identities.get(account.account_id)

    async def create_identity(self, account: Account) -> Identity:
        identity = Identity(account_id=account.account_id, name=account.name)
        self._identities[account.account_id] = identity
        return identity

    async def create_relationship(self, identity: Identity, ledger: TargetLedger) -> Balance:
        key = (identity.account_id, ledger.identifier)
        balance = self._balances.get(key)
        if balance is None:
            balance = Balance(account_id=identity.account_id, ledger_identifier=ledger.identifier)
            self._balances[key] = balance
        return balance

    async def set_balance(self, balance: Balance, amount: float) -> Balance:
        key = (balance.account_id, balance.ledger_identifier)
        if balance.ledger_identifier not in self._ledgers:
            raise KeyError(f"Unknown ledger '{balance.ledger_identifier}'")
        stored = balance.model_copy(update={"amount": amount})
        self._balances[key] = stored
        return stored

    def balance_of(self, account_id: str, identifier: str) -> float | None:
        """Synchronous lookup for inspection and tests."""
        balance = self._balances.get((account_id, identifier))
        return balance.amount if balance is not None else None


class InMemoryProviderRegistry:
    """Priority-ordered registrations for the balance capability."""

    def __init__(self, capability: str = BALANCE_CAPABILITY):
        self.capability = capability
        self._registrations: list[Registration] = []

    @property
    def registrations(self) -> list[Registration]:
        return list(self._registrations)

    def register(self, capability: str, provider: Any, owner: str, priority: int) -> None:
        self._registrations.append(
            Registration(capability=capability, provider=provider, owner=owner, priority=priority)
        )
        logger.debug(
            "Registered provider", provider=provider.provider_name(), owner=owner, priority=priority
        )

    def unregister_all(self, owner: str) -> None:
        self._registrations = [r for r in self._registrations if r.owner != owner]

    def get_active_registration(self) -> Registration | None:
        matching = [r for r in self._registrations if r.capability == self.capability]
        if not matching:
            return None
        # Highest priority wins; the earliest registration wins ties
        return max(matching, key=lambda r: r.priority)


class StaticSourceProvider:
    """Source provider serving balances from a dict."""

    def __init__(
        self,
        name: str,
        balances: dict[str, float] | None = None,
        currency_singular: str = "Dollar",
        currency_plural: str = "Dollars",
        enabled: bool = True,
    ):
        self.name = name
        self.balances = dict(balances or {})
        self.currency_singular = currency_singular
        self.currency_plural = currency_plural
        self.enabled = enabled

    @classmethod
    def from_file(cls, name: str, path: Path | str, **kwargs: Any) -> "StaticSourceProvider":
        """Load balances from a YAML mapping of account id to amount.

        A backup artifact is accepted too; its ``balances`` section is used.

        Raises:
            ConfigurationError: file missing or not a mapping of numbers
        """
        path = Path(path)
        try:
            document = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to load balances from {path}: {e}") from e

        if isinstance(document, dict) and isinstance(document.get("balances"), dict):
            document = document["balances"]
        if not isinstance(document, dict):
            raise ConfigurationError(f"Balances file {path} must contain a mapping")

        try:
            balances = {str(k): float(v) for k, v in document.items()}
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid balance in {path}: {e}") from e
        return cls(name, balances, **kwargs)

    def provider_name(self) -> str:
        return self.name

    def is_enabled(self) -> bool:
        return self.enabled

    def currency_name_singular(self) -> str:
        return self.currency_singular

    def currency_name_plural(self) -> str:
        return self.currency_plural

    async def has_account(self, account: Account) -> bool:
        return account.account_id in self.balances

    async def get_balance(self, account: Account) -> float:
        return self.balances.get(account.account_id, 0.0)


class StaticAccountEnumerator:
    """Yields a fixed list of accounts in order."""

    def __init__(self, accounts: Iterable[Account | str] = ()):
        self._accounts = [
            account if isinstance(account, Account) else Account(account_id=account)
            for account in accounts
        ]

    async def accounts(self) -> AsyncIterator[Account]:
        for account in list(self._accounts):
            yield account
