"""Shared pytest fixtures for LedgerBridge tests."""

import asyncio
import random
from collections.abc import AsyncGenerator
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from fastmcp import Client

from ledger_bridge.constants import BALANCE_CAPABILITY, PRIORITY_NORMAL
from ledger_bridge.core.config_loader import LedgerBridgeConfig
from ledger_bridge.core.memory import (
    InMemoryLedgerStore,
    InMemoryProviderRegistry,
    StaticAccountEnumerator,
    StaticSourceProvider,
)
from ledger_bridge.core.migration import MigrationCoordinator, default_registry
from ledger_bridge.core.settings import MigrationSettings
from ledger_bridge.middleware import ErrorHandlingMiddleware, LoggingMiddleware
from ledger_bridge.models.ledger import Account
from ledger_bridge.server import LedgerBridgeServer


@pytest.fixture
def settings() -> MigrationSettings:
    """Migration settings isolated from the environment."""
    return MigrationSettings(_env_file=None)


@pytest.fixture
def accounts() -> list[Account]:
    """A and B hold source balances, C is unknown to the source."""
    return [
        Account(account_id="A", name="alice"),
        Account(account_id="B", name="bob"),
        Account(account_id="C", name="carol"),
    ]


@pytest.fixture
def source() -> StaticSourceProvider:
    return StaticSourceProvider("Essentials", {"A": 100.0, "B": -5.0})


@pytest.fixture
def registry(source: StaticSourceProvider) -> InMemoryProviderRegistry:
    registry = InMemoryProviderRegistry()
    registry.register(BALANCE_CAPABILITY, source, "Essentials", PRIORITY_NORMAL)
    return registry


@pytest.fixture
def store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture
def enumerator(accounts: list[Account]) -> StaticAccountEnumerator:
    return StaticAccountEnumerator(accounts)


@pytest.fixture
def coordinator(registry, store, enumerator, settings, tmp_path) -> MigrationCoordinator:
    """Coordinator over the in-memory host with backups under tmp_path."""
    return MigrationCoordinator(
        registry,
        store,
        enumerator,
        settings=settings,
        strategies=default_registry(),
        backup_dir=tmp_path / "backups",
        rng=random.Random(7),
    )


@pytest.fixture
def config(settings: MigrationSettings, tmp_path) -> LedgerBridgeConfig:
    """Server configuration with a small Essentials source."""
    config = LedgerBridgeConfig()
    config.migration = settings.model_copy(update={"backup_dir": str(tmp_path / "backups")})
    config.source.provider = "Essentials"
    config.source.balances = {"A": 100.0, "B": 25.5}
    return config


@pytest.fixture
def server(config: LedgerBridgeConfig) -> LedgerBridgeServer:
    """Create LedgerBridge server instance for testing."""
    server = LedgerBridgeServer(config)
    server._initialize_app()
    return server


@pytest.fixture
async def client(server: LedgerBridgeServer) -> AsyncGenerator[Client, None]:
    """Create FastMCP client connected to server in-memory."""
    async with Client(server.app) as client:
        yield client


@pytest.fixture
def logging_middleware():
    """Create LoggingMiddleware for testing."""
    return LoggingMiddleware(include_payloads=True, max_payload_length=100)


@pytest.fixture
def error_handling_middleware():
    """Create ErrorHandlingMiddleware for testing."""
    return ErrorHandlingMiddleware(include_traceback=True, track_error_stats=True)


@pytest.fixture
def mock_context():
    """Create mock MiddlewareContext for unit tests."""
    context = MagicMock()
    context.method = "tools/call"
    context.source = "test_client"
    context.type = "request"
    context.timestamp = 1640995200.0
    context.message = SimpleNamespace(name="ledger_migration", arguments={"action": "status"})
    return context


class MockCall:
    """Mock call_next function for middleware testing."""

    def __init__(self, return_value=None, exception=None, delay=0):
        self.return_value = return_value or {"status": "success"}
        self.exception = exception
        self.delay = delay
        self.call_count = 0

    async def __call__(self, context):
        self.call_count += 1

        if self.delay > 0:
            await asyncio.sleep(self.delay)

        if self.exception:
            raise self.exception

        return self.return_value


class GatedSourceProvider(StaticSourceProvider):
    """Source whose balance reads block until the test opens the gate."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.gate = asyncio.Event()
        self.reads = 0

    async def get_balance(self, account: Account) -> float:
        self.reads += 1
        await self.gate.wait()
        return await super().get_balance(account)
