"""Parameter models for FastMCP tool validation."""

from typing import Annotated, Any

from pydantic import BaseModel, Field, StringConstraints, field_validator

from .enums import MigrationAction

LedgerIdentifier = Annotated[
    str, StringConstraints(max_length=64, pattern=r"^$|^[A-Za-z0-9][A-Za-z0-9_.-]*$")
]


def _validate_enum_action(value: Any, enum_class: type) -> Any:
    """Generic validator for enum action fields."""
    if isinstance(value, str):
        # Handle "EnumClass.VALUE" format
        if "." in value:
            enum_value = value.split(".")[-1].lower()
        else:
            enum_value = value.lower()

        for action in enum_class:
            if action.value == enum_value or action.name.lower() == enum_value:
                return action
    elif isinstance(value, enum_class):
        return value

    # Let Pydantic handle the error if no match
    return value


class LedgerMigrationParams(BaseModel):
    """Parameters for the ledger_migration tool."""

    action: MigrationAction = Field(
        default=MigrationAction.STATUS, description="Action to perform (defaults to status)"
    )
    create_backup: bool | None = Field(
        default=None, description="Snapshot source balances first (configured default when unset)"
    )
    switch_provider: bool | None = Field(
        default=None,
        description="Fail over to LedgerBridge afterwards (configured default when unset)",
    )
    target_identifier: LedgerIdentifier = Field(
        default="", description="Target ledger identifier (empty for auto-select)"
    )
    wait: bool = Field(default=False, description="Wait for the run to finish before returning")

    @field_validator("action", mode="before")
    @classmethod
    def validate_action(cls, v):
        """Validate action field to handle various enum input formats."""
        return _validate_enum_action(v, MigrationAction)
