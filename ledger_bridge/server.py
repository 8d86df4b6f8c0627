"""
LedgerBridge Server

A FastMCP server that migrates account balances from a legacy balance
provider into a ledger and optionally fails the provider over.
"""

import argparse
import os
import sys
import tempfile
from pathlib import Path
from typing import Annotated, Any

from fastmcp import FastMCP
from fastmcp.tools.tool import ToolResult
from mcp.types import TextContent
from pydantic import Field, ValidationError

from .constants import BALANCE_CAPABILITY, OWNER_NAME, PRIORITY_NORMAL
from .core.capabilities import AccountEnumerator, LedgerStore, ProviderRegistry
from .core.config_loader import CONFIG_FILE_NAME, LedgerBridgeConfig, load_config
from .core.error_response import LedgerBridgeErrorResponse
from .core.exceptions import ConfigurationError
from .core.logging_config import get_server_logger
from .core.memory import (
    InMemoryLedgerStore,
    InMemoryProviderRegistry,
    StaticAccountEnumerator,
    StaticSourceProvider,
)
from .core.migration import MigrationCoordinator
from .middleware import ErrorHandlingMiddleware, LoggingMiddleware
from .models.enums import MigrationAction
from .models.params import LedgerMigrationParams
from .services import MigrationService


def get_data_dir() -> Path:
    """Get data directory based on environment.

    Priority order:
    1. LEDGER_BRIDGE_DATA_DIR (application-specific)
    2. XDG_DATA_HOME (Linux/Unix standard)
    3. User home fallback (~/.ledger-bridge/data)
    4. System temp fallback
    """
    candidates: list[Path] = []
    if data_dir := os.getenv("LEDGER_BRIDGE_DATA_DIR"):
        candidates.append(Path(data_dir))
    if xdg_path := os.getenv("XDG_DATA_HOME"):
        candidates.append(Path(xdg_path) / "ledger-bridge")
    candidates.append(Path.home() / ".ledger-bridge" / "data")
    candidates.append(Path(tempfile.gettempdir()) / "ledger-bridge")

    for candidate in candidates:
        try:
            candidate.mkdir(parents=True, exist_ok=True)
        except OSError:
            continue
        if os.access(candidate, os.W_OK):
            return candidate

    # Let the caller surface the permission error
    return candidates[0]


def get_config_dir() -> Path:
    """Get config directory based on environment.

    Priority order:
    1. LEDGER_BRIDGE_CONFIG_DIR (application-specific)
    2. XDG_CONFIG_HOME (Linux/Unix standard)
    3. Local project config (./config)
    """
    if config_dir := os.getenv("LEDGER_BRIDGE_CONFIG_DIR"):
        return Path(config_dir).absolute()
    if xdg_home := os.getenv("XDG_CONFIG_HOME"):
        xdg_dir = Path(xdg_home) / "ledger-bridge"
        if xdg_dir.is_dir():
            return xdg_dir
    return Path.cwd() / "config"


def build_default_host(
    config: LedgerBridgeConfig,
) -> tuple[ProviderRegistry, LedgerStore, AccountEnumerator]:
    """Wire the in-memory host from the ``source`` and ``ledgers`` config sections.

    Raises:
        ConfigurationError: the balances file cannot be loaded
    """
    source_config = config.source
    kwargs = {
        "currency_singular": source_config.currency_singular,
        "currency_plural": source_config.currency_plural,
        "enabled": source_config.enabled,
    }
    if source_config.balances_file:
        source = StaticSourceProvider.from_file(
            source_config.provider, source_config.balances_file, **kwargs
        )
        source.balances.update(source_config.balances)
    else:
        source = StaticSourceProvider(source_config.provider, source_config.balances, **kwargs)

    registry = InMemoryProviderRegistry()
    registry.register(BALANCE_CAPABILITY, source, source.provider_name(), PRIORITY_NORMAL)

    store = InMemoryLedgerStore(config.ledgers)
    enumerator = StaticAccountEnumerator(source.balances)
    return registry, store, enumerator


class LedgerBridgeServer:
    """FastMCP server exposing the balance migration pipeline."""

    def __init__(
        self,
        config: LedgerBridgeConfig,
        registry: ProviderRegistry | None = None,
        store: LedgerStore | None = None,
        enumerator: AccountEnumerator | None = None,
    ):
        self.config = config
        self.logger = get_server_logger()

        if registry is None or store is None or enumerator is None:
            default_registry, default_store, default_enumerator = build_default_host(config)
            registry = registry or default_registry
            store = store or default_store
            enumerator = enumerator or default_enumerator

        backup_dir = Path(config.migration.backup_dir)
        if not backup_dir.is_absolute():
            backup_dir = get_data_dir() / backup_dir

        self.coordinator = MigrationCoordinator(
            registry,
            store,
            enumerator,
            settings=config.migration,
            backup_dir=backup_dir,
        )
        self.migration_service = MigrationService(self.coordinator)

        # FastMCP app will be created later to prevent auto-start
        self.app: FastMCP | None = None

        self.logger.info(
            "LedgerBridge server initialized",
            owner=OWNER_NAME,
            target_provider=config.migration.target_provider_name,
            backup_dir=str(backup_dir),
            server_config=config.server.model_dump(),
        )

    def _initialize_app(self) -> None:
        """Initialize FastMCP app, middleware, and register tools."""
        self.app = FastMCP("LedgerBridge")
        self._configure_middleware()

        self.app.tool(
            self.ledger_migration,
            annotations={
                "title": "Ledger Balance Migration",
                "readOnlyHint": False,  # start writes balances, other actions only read
                "destructiveHint": False,  # existing target balances are never lowered
                "idempotentHint": True,  # a repeated start leaves balances unchanged
                "openWorldHint": False,
            },
        )
        self.logger.info("FastMCP app initialized", tools=["ledger_migration"])

    def _configure_middleware(self) -> None:
        """Configure FastMCP middleware stack."""
        if self.app is None:
            return
        # First added = first executed
        self.app.add_middleware(
            ErrorHandlingMiddleware(
                include_traceback=self.config.server.log_level.upper() == "DEBUG",
                track_error_stats=True,
            )
        )
        self.app.add_middleware(
            LoggingMiddleware(
                include_payloads=True,
                max_payload_length=_parse_env_int("LOG_MAX_PAYLOAD_LENGTH", 1000),
            )
        )

    async def ledger_migration(
        self,
        action: Annotated[
            str | MigrationAction | None,
            Field(default=None, description="Action to perform (defaults to status if not provided)"),
        ] = None,
        create_backup: Annotated[
            bool | None,
            Field(default=None, description="Back up source balances first (settings default if omitted)"),
        ] = None,
        switch_provider: Annotated[
            bool | None,
            Field(default=None, description="Fail over to LedgerBridge afterwards (settings default if omitted)"),
        ] = None,
        target_identifier: Annotated[
            str, Field(default="", description="Target ledger identifier (empty to auto-select)")
        ] = "",
        wait: Annotated[
            bool, Field(default=False, description="Wait for the migration to finish")
        ] = False,
    ) -> ToolResult | dict[str, Any]:
        """Balance migration tool.

        Actions:
        • start: Migrate every balance from the active provider into a ledger
          - Optional: create_backup, switch_provider (both default to the
            migration settings), target_identifier, wait (default: false)

        • status: Report whether a migration is running, or the last result

        • supported: List the providers that can be migrated

        • history: Last migration with totals and a sample of errors

        • info: Describe the migration system

        • ledgers: List existing target ledgers
        """
        try:
            params = LedgerMigrationParams(
                action=action if action is not None else MigrationAction.STATUS,
                create_backup=create_backup,
                switch_provider=switch_provider,
                target_identifier=target_identifier,
                wait=wait,
            )
        except ValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ())) or "params"
            return LedgerBridgeErrorResponse.validation_error(
                field, first.get("input"), first.get("msg", str(e))
            )

        service_result = await self.migration_service.handle_action(
            params.action, **params.model_dump(exclude={"action"})
        )

        formatted_text = service_result.get("formatted_output", "")
        if formatted_text:
            return ToolResult(
                content=[TextContent(type="text", text=formatted_text)],
                structured_content=service_result,
            )
        return service_result

    def run(self) -> None:
        """Run the FastMCP server."""
        try:
            self._initialize_app()

            self.logger.info(
                "Starting LedgerBridge server",
                host=self.config.server.host,
                port=self.config.server.port,
            )

            if self.app is None:
                raise RuntimeError("FastMCP app not initialized")
            self.app.run(
                transport="http",
                host=self.config.server.host,
                port=self.config.server.port,
            )
        except Exception as e:
            self.logger.error("Server startup failed", error=str(e))
            raise


def _parse_env_int(var_name: str, default: int) -> int:
    """Parse an integer environment variable, falling back to the default."""
    value = os.getenv(var_name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        get_server_logger().warning(
            "Invalid integer environment variable; using default", variable=var_name, default=default
        )
        return default


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    from dotenv import load_dotenv

    load_dotenv()

    default_host = os.getenv("FASTMCP_HOST", "127.0.0.1")
    default_port = _parse_env_int("FASTMCP_PORT", 8000)
    default_log_level = os.getenv("LOG_LEVEL", "INFO")
    default_config = os.getenv("LEDGER_BRIDGE_CONFIG", str(get_config_dir() / CONFIG_FILE_NAME))

    parser = argparse.ArgumentParser(description="LedgerBridge balance migration server")
    parser.add_argument("--host", default=default_host, help="Server host")
    parser.add_argument("--port", type=int, default=default_port, help="Server port")
    parser.add_argument("--config", default=default_config, help="Configuration file path")
    parser.add_argument(
        "--log-level",
        default=default_log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    parser.add_argument(
        "--validate-config", action="store_true", help="Validate configuration and exit"
    )

    return parser.parse_args(argv)


def main() -> None:
    """Main entry point."""
    args = parse_args()

    log_dir = _setup_log_directory()
    logger = _setup_logging_system(args, log_dir)

    try:
        config = _load_and_configure(args, logger)
        if config is None:  # Validation-only mode
            return
        server = LedgerBridgeServer(config)
    except ConfigurationError as e:
        logger.error("Invalid configuration", error=str(e))
        sys.exit(2)

    try:
        server.run()
    except KeyboardInterrupt:
        logger.info("Server shutdown requested")
    except Exception as e:
        logger.error("Server error", error=str(e))
        sys.exit(1)


def _setup_log_directory() -> str | None:
    """Setup log directory with fallback options."""
    log_dir_candidates = [
        os.getenv("LOG_DIR"),
        str(get_data_dir() / "logs"),
        str(Path(tempfile.gettempdir()) / "ledger-bridge-logs"),
    ]

    for candidate in log_dir_candidates:
        if not candidate:
            continue
        candidate_path = Path(candidate)
        try:
            candidate_path.mkdir(parents=True, exist_ok=True)
        except OSError:
            continue
        if candidate_path.is_dir() and os.access(candidate_path, os.W_OK):
            return str(candidate_path)

    print("Warning: Unable to create log directory, using console-only logging")
    return None


def _setup_logging_system(args: argparse.Namespace, log_dir: str | None):
    """Setup logging system and return the server logger."""
    from .core.logging_config import setup_logging

    max_file_size_mb = _parse_env_int("LOG_FILE_SIZE_MB", 10)
    if max_file_size_mb < 1 or max_file_size_mb > 100:
        max_file_size_mb = 10

    setup_logging(log_dir=log_dir, log_level=args.log_level, max_file_size_mb=max_file_size_mb)
    logger = get_server_logger()
    logger.info(
        "Logging system initialized",
        log_dir=log_dir,
        log_level=args.log_level,
        max_file_size_mb=max_file_size_mb,
        file_logging=log_dir is not None,
    )
    return logger


def _load_and_configure(args: argparse.Namespace, logger) -> LedgerBridgeConfig | None:
    """Load configuration, returning None for validation-only mode."""
    config = load_config(args.config)

    # CLI arguments win over file and environment
    config.server.host = args.host
    config.server.port = args.port
    config.server.log_level = args.log_level

    if args.validate_config:
        build_default_host(config)
        logger.info("Configuration validation successful", config_path=config.config_file)
        return None

    logger.info("Configuration loaded", config_path=config.config_file, ledgers=len(config.ledgers))
    return config


if __name__ == "__main__":
    main()
