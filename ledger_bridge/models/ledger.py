"""Account and ledger data models shared by the store capability."""

from pydantic import BaseModel, ConfigDict, Field


class Account(BaseModel):
    """An end-user identity known to the balance-holding systems."""

    model_config = ConfigDict(frozen=True)

    account_id: str = Field(description="Stable account identifier (e.g. a UUID)")
    name: str | None = Field(default=None, description="Display name, if the host knows one")


class Identity(BaseModel):
    """Target-side identity record for an account."""

    model_config = ConfigDict(frozen=True)

    account_id: str
    name: str | None = None


class LedgerSpec(BaseModel):
    """Attributes used to create a new target ledger."""

    identifier: str
    symbol: str = "$"
    prefix: str = ""
    suffix: str = ""
    icon: str = "GOLD_INGOT"


class TargetLedger(LedgerSpec):
    """Destination ledger (one currency / unit of account)."""

    model_config = ConfigDict(frozen=True)

    ledger_id: int


class Balance(BaseModel):
    """Quantity of one ledger held by one account."""

    account_id: str
    ledger_identifier: str
    amount: float = 0.0
