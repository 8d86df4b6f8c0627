"""Migration tunables.

Centralized pipeline settings using Pydantic BaseSettings with
environment variable support for operational tuning.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

TARGET_PROVIDER_NAME = "LedgerBridge"


class MigrationSettings(BaseSettings):
    """Migration pipeline configuration."""

    progress_interval: int = Field(
        100, ge=1, alias="MIGRATION_PROGRESS_INTERVAL", description="Accounts between progress logs"
    )

    verify_sample_size: int = Field(
        10, ge=0, alias="MIGRATION_VERIFY_SAMPLE_SIZE", description="Accounts sampled by verification"
    )

    balance_tolerance: float = Field(
        0.01, gt=0, alias="MIGRATION_BALANCE_TOLERANCE", description="Allowed rounding difference"
    )

    max_error_messages: int = Field(
        100, ge=1, alias="MIGRATION_MAX_ERRORS", description="Error strings kept in stats"
    )

    error_display_limit: int = Field(
        5, ge=1, alias="MIGRATION_ERROR_DISPLAY_LIMIT", description="Errors shown in summaries"
    )

    backup_dir: str = Field(
        "migration-backups", alias="MIGRATION_BACKUP_DIR", description="Backup snapshot directory"
    )

    target_provider_name: str = Field(
        TARGET_PROVIDER_NAME,
        alias="MIGRATION_TARGET_PROVIDER",
        description="Provider name the target system registers under",
    )

    default_ledger_identifier: str = Field(
        "migrated-currency",
        alias="MIGRATION_DEFAULT_LEDGER",
        description="Identifier for a newly created target ledger",
    )

    default_symbol: str = Field("$", alias="MIGRATION_DEFAULT_SYMBOL")

    default_icon: str = Field("GOLD_INGOT", alias="MIGRATION_DEFAULT_ICON")

    default_create_backup: bool = Field(True, alias="MIGRATION_CREATE_BACKUP")

    default_switch_provider: bool = Field(False, alias="MIGRATION_SWITCH_PROVIDER")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)
