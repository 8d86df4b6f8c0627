"""Tests for backup snapshots."""

from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from ledger_bridge.core.backup import BackupSnapshotter, load_snapshot
from ledger_bridge.core.exceptions import BackupError
from ledger_bridge.core.memory import StaticAccountEnumerator, StaticSourceProvider
from ledger_bridge.models.migration import ProviderHandle


@pytest.fixture
def handle(source: StaticSourceProvider) -> ProviderHandle:
    return ProviderHandle(name="Essentials", provider=source, strategy_name="Essentials")


class TestBackupSnapshotter:
    """Test suite for BackupSnapshotter."""

    @pytest.mark.asyncio
    async def test_snapshot_writes_yaml(self, handle, enumerator, tmp_path):
        snapshotter = BackupSnapshotter(tmp_path / "backups")

        snapshot = await snapshotter.snapshot(handle, enumerator)

        assert snapshot.record_count == 2
        assert snapshot.balances == {"A": 100.0, "B": -5.0}
        assert snapshot.source_provider == "Essentials"
        assert [p.name for p in (tmp_path / "backups").iterdir()] == [Path(snapshot.path).name]

        document = yaml.safe_load(Path(snapshot.path).read_text())
        assert document["migration"]["source-provider"] == "Essentials"
        assert document["migration"]["record-count"] == 2
        assert document["balances"] == {"A": 100.0, "B": -5.0}

    @pytest.mark.asyncio
    async def test_snapshot_file_naming(self, handle, enumerator, tmp_path):
        snapshot = await BackupSnapshotter(tmp_path).snapshot(handle, enumerator)

        name = Path(snapshot.path).name
        assert name.startswith("balance-backup-")
        assert name.endswith(".yml")
        assert not list(tmp_path.glob("*.tmp"))

    @pytest.mark.asyncio
    async def test_load_snapshot_round_trip(self, handle, enumerator, tmp_path):
        written = await BackupSnapshotter(tmp_path).snapshot(handle, enumerator)

        loaded = load_snapshot(written.path)

        assert loaded.balances == written.balances
        assert loaded.timestamp == written.timestamp
        assert loaded.record_count == written.record_count

    @pytest.mark.asyncio
    async def test_write_failure_raises_backup_error(self, handle, enumerator, tmp_path):
        snapshotter = BackupSnapshotter(tmp_path)

        with patch.object(BackupSnapshotter, "_write", side_effect=OSError("disk full")):
            with pytest.raises(BackupError, match="disk full"):
                await snapshotter.snapshot(handle, enumerator)

        assert not list(tmp_path.iterdir())

    @pytest.mark.asyncio
    async def test_failed_dump_leaves_no_temp_file(self, handle, enumerator, tmp_path):
        snapshotter = BackupSnapshotter(tmp_path)

        with patch("ledger_bridge.core.backup.yaml.safe_dump", side_effect=yaml.YAMLError("bad")):
            with pytest.raises(BackupError, match="bad"):
                await snapshotter.snapshot(handle, enumerator)

        assert not list(tmp_path.glob("*.tmp"))
        assert not list(tmp_path.glob("*.yml"))

    @pytest.mark.asyncio
    async def test_read_failure_raises_backup_error(self, tmp_path):
        class BrokenSource(StaticSourceProvider):
            async def get_balance(self, account):
                raise RuntimeError("provider offline")

        handle = ProviderHandle(
            name="Essentials", provider=BrokenSource("Essentials", {"A": 1.0}), strategy_name="Essentials"
        )

        with pytest.raises(BackupError, match="provider offline"):
            await BackupSnapshotter(tmp_path).snapshot(handle, StaticAccountEnumerator(["A"]))


class TestLoadSnapshot:
    """Test suite for load_snapshot."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(BackupError):
            load_snapshot(tmp_path / "missing.yml")

    def test_not_a_backup(self, tmp_path):
        path = tmp_path / "other.yml"
        path.write_text("just: data\n")

        with pytest.raises(BackupError, match="Not a migration backup"):
            load_snapshot(path)

    def test_malformed_header(self, tmp_path):
        path = tmp_path / "broken.yml"
        path.write_text("migration:\n  source-provider: Essentials\nbalances: {}\n")

        with pytest.raises(BackupError, match="Malformed"):
            load_snapshot(path)
