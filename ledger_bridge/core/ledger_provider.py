"""Balance provider backed by the target ledger store."""

from ..models.ledger import Account, TargetLedger
from .capabilities import LedgerStore
from .settings import TARGET_PROVIDER_NAME

NOT_DEFINED = "not_defined"


class LedgerProvider:
    """Exposes the source provider capability on top of a ledger store.

    Registered as the active provider when a migration fails over.
    """

    def __init__(
        self,
        store: LedgerStore,
        ledger: TargetLedger | None,
        name: str = TARGET_PROVIDER_NAME,
    ):
        self.store = store
        self.ledger = ledger
        self.name = name

    def provider_name(self) -> str:
        return self.name

    def is_enabled(self) -> bool:
        return self.ledger is not None

    def currency_name_singular(self) -> str:
        return self.ledger.identifier if self.ledger else NOT_DEFINED

    def currency_name_plural(self) -> str:
        return f"{self.ledger.identifier}s" if self.ledger else NOT_DEFINED

    def format(self, amount: float) -> str:
        formatted = f"{amount:.2f}"
        if self.ledger and self.ledger.symbol:
            return f"{self.ledger.symbol}{formatted}"
        return formatted

    async def has_account(self, account: Account) -> bool:
        if self.ledger is None:
            return False
        return await self.store.find_balance(account, self.ledger) is not None

    async def get_balance(self, account: Account) -> float:
        if self.ledger is None:
            return 0.0
        balance = await self.store.find_balance(account, self.ledger)
        return balance.amount if balance is not None else 0.0
