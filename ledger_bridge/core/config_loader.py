"""Configuration management for the LedgerBridge server."""

import asyncio
import os
import re
from pathlib import Path
from typing import Any

import structlog
import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings

from ..models.ledger import LedgerSpec
from .exceptions import ConfigurationError
from .settings import MigrationSettings

logger = structlog.get_logger()

CONFIG_FILE_NAME = "config.yml"


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="127.0.0.1", alias="FASTMCP_HOST")
    port: int = Field(default=8000, alias="FASTMCP_PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_dir: str | None = None

    model_config = {"populate_by_name": True}


class SourceConfig(BaseModel):
    """File-backed source provider used when no host injects one."""

    provider: str = "Essentials"
    currency_singular: str = "Dollar"
    currency_plural: str = "Dollars"
    enabled: bool = True
    balances_file: str | None = None
    balances: dict[str, float] = Field(default_factory=dict)


class LedgerBridgeConfig(BaseSettings):
    """Main configuration for the LedgerBridge server."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    migration: MigrationSettings = Field(default_factory=MigrationSettings)
    source: SourceConfig = Field(default_factory=SourceConfig)
    ledgers: list[LedgerSpec] = Field(default_factory=list)
    config_file: str = Field(default=CONFIG_FILE_NAME, alias="LEDGER_BRIDGE_CONFIG")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


def load_config(config_path: str | None = None) -> LedgerBridgeConfig:
    """Load configuration from multiple sources (synchronous interface).

    Args:
        config_path: Optional path to YAML config file

    Returns:
        Loaded configuration

    Note:
        Cannot be called while an event loop is running; use
        load_config_async() there instead.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(load_config_async(config_path))
    raise RuntimeError(
        "load_config() cannot be called from within an async context. "
        "Use 'await load_config_async()' instead."
    )


async def load_config_async(config_path: str | None = None) -> LedgerBridgeConfig:
    """Load configuration from multiple sources (async interface).

    Priority, lowest first: defaults, user config, project config,
    environment variables.

    Args:
        config_path: Optional path to YAML config file

    Returns:
        Loaded configuration

    Raises:
        ConfigurationError: a config file exists but cannot be parsed or validated
    """
    load_dotenv()

    config = LedgerBridgeConfig()

    user_config_path = Path.home() / ".config" / "ledger-bridge" / CONFIG_FILE_NAME
    await _load_config_file(config, user_config_path)

    from ..server import get_config_dir  # Import at use to avoid circular imports

    default_config_file = os.getenv(
        "LEDGER_BRIDGE_CONFIG", str(get_config_dir() / CONFIG_FILE_NAME)
    )
    project_config_path = Path(config_path or default_config_file)
    await _load_config_file(config, project_config_path)

    config.config_file = str(project_config_path)

    _apply_env_overrides(config)

    return config


async def _load_config_file(config: LedgerBridgeConfig, config_path: Path) -> None:
    """Load and apply configuration from a YAML file."""
    if not config_path.exists():
        return

    yaml_config = await _load_yaml_config(config_path)
    try:
        _apply_server_config(config, yaml_config)
        _apply_migration_config(config, yaml_config)
        _apply_source_config(config, yaml_config, config_path.parent)
        _apply_ledgers(config, yaml_config)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {config_path}: {e}") from e

    logger.debug("Loaded configuration file", path=str(config_path))


def _apply_server_config(config: LedgerBridgeConfig, yaml_config: dict[str, Any]) -> None:
    """Apply server configuration from YAML data."""
    server = yaml_config.get("server")
    if not server:
        return
    merged = config.server.model_dump() | server
    config.server = ServerConfig.model_validate(merged)


def _apply_migration_config(config: LedgerBridgeConfig, yaml_config: dict[str, Any]) -> None:
    """Apply migration tunables from YAML data.

    Keys use the field names, e.g. ``progress_interval``.
    """
    migration = yaml_config.get("migration")
    if not migration:
        return
    merged = config.migration.model_dump() | migration
    config.migration = MigrationSettings.model_validate(merged)


def _apply_source_config(
    config: LedgerBridgeConfig, yaml_config: dict[str, Any], base_dir: Path
) -> None:
    """Apply the file-backed source section, resolving relative paths."""
    source = yaml_config.get("source")
    if not source:
        return
    merged = config.source.model_dump() | source
    balances_file = merged.get("balances_file")
    if balances_file and not Path(balances_file).is_absolute():
        merged["balances_file"] = str(base_dir / balances_file)
    config.source = SourceConfig.model_validate(merged)


def _apply_ledgers(config: LedgerBridgeConfig, yaml_config: dict[str, Any]) -> None:
    """Apply pre-existing target ledgers from YAML data."""
    ledgers = yaml_config.get("ledgers")
    if not ledgers:
        return
    if isinstance(ledgers, dict):
        # Mapping form: identifier -> attributes
        ledgers = [{"identifier": key, **(value or {})} for key, value in ledgers.items()]
    config.ledgers = [LedgerSpec.model_validate(item) for item in ledgers]


def _apply_env_overrides(config: LedgerBridgeConfig) -> None:
    """Apply environment variable overrides."""
    if host := os.getenv("FASTMCP_HOST"):
        config.server.host = host
    if port_env := os.getenv("FASTMCP_PORT"):
        try:
            config.server.port = int(port_env)
        except ValueError as e:
            raise ConfigurationError(f"FASTMCP_PORT must be an integer, got {port_env!r}") from e
    if log_level := os.getenv("LOG_LEVEL"):
        config.server.log_level = log_level


async def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """Load YAML configuration file."""
    try:
        content = await asyncio.to_thread(config_path.read_text)
        content = _expand_yaml_config(content)
        loaded = yaml.safe_load(content)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to load config from {config_path}: {e}") from e

    # yaml.safe_load can return None, str or list
    if not isinstance(loaded, dict):
        return {}
    return loaded


ALLOWED_ENV_VARS = frozenset(
    {
        "HOME",
        "USER",
        "XDG_CONFIG_HOME",
        "XDG_DATA_HOME",
        "LEDGER_BRIDGE_CONFIG",
        "LEDGER_BRIDGE_CONFIG_DIR",
        "LEDGER_BRIDGE_DATA_DIR",
        "FASTMCP_HOST",
        "FASTMCP_PORT",
        "LOG_LEVEL",
        "MIGRATION_BACKUP_DIR",
    }
)


def _expand_yaml_config(content: str) -> str:
    """Expand ``${VAR}`` and ``$VAR`` references, allowlisted variables only."""

    def replace_if_allowed(match: re.Match[str]) -> str:
        var_name = match.group(1) or match.group(2)
        original_pattern = match.group(0)

        if var_name in ALLOWED_ENV_VARS:
            return os.getenv(var_name, original_pattern)
        logger.warning(
            "Environment variable not in allowlist, skipping expansion",
            variable=var_name,
            pattern=original_pattern,
        )
        return original_pattern

    return re.sub(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)", replace_if_allowed, content)
