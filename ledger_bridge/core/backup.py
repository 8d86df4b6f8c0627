"""Pre-migration balance snapshots for rollback and audit."""

import asyncio
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog
import yaml

from ..constants import BACKUP_FILE_PREFIX, BACKUP_FILE_SUFFIX, BACKUP_FORMAT_VERSION
from ..models.migration import BackupSnapshot, ProviderHandle
from .capabilities import AccountEnumerator
from .exceptions import BackupError

logger = structlog.get_logger()


class BackupSnapshotter:
    """Serializes every discoverable source balance before any target mutation."""

    def __init__(self, backup_dir: Path | str, version: str = BACKUP_FORMAT_VERSION):
        self.backup_dir = Path(backup_dir)
        self.version = version
        self.logger = logger.bind(component="backup_snapshotter")

    async def snapshot(self, handle: ProviderHandle, enumerator: AccountEnumerator) -> BackupSnapshot:
        """Record all source balances and write them to a YAML artifact.

        Args:
            handle: Detected source provider
            enumerator: Yields every known account

        Returns:
            The written snapshot

        Raises:
            BackupError: balances could not be read or the artifact could not be written
        """
        source = handle.source
        balances: dict[str, float] = {}
        try:
            async for account in enumerator.accounts():
                if await source.has_account(account):
                    balances[account.account_id] = float(await source.get_balance(account))
        except Exception as e:
            raise BackupError(f"Failed to read source balances: {e}") from e

        created = datetime.now(UTC)
        backup_path = self.backup_dir / (
            f"{BACKUP_FILE_PREFIX}{created.strftime('%Y%m%d_%H%M%S_%f')}{BACKUP_FILE_SUFFIX}"
        )
        snapshot = BackupSnapshot(
            timestamp=created,
            source_provider=handle.name,
            version=self.version,
            balances=balances,
            record_count=len(balances),
            path=str(backup_path),
        )

        try:
            await asyncio.to_thread(self._write, backup_path, snapshot)
        except (OSError, yaml.YAMLError) as e:
            self.logger.error("Failed to write migration backup", path=str(backup_path), error=str(e))
            raise BackupError(f"Failed to write backup {backup_path}: {e}") from e

        self.logger.info(
            "Created migration backup",
            path=str(backup_path),
            records=snapshot.record_count,
            source_provider=handle.name,
        )
        return snapshot

    def _write(self, path: Path, snapshot: BackupSnapshot) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        document = {
            "migration": {
                "timestamp": snapshot.timestamp.isoformat(),
                "source-provider": snapshot.source_provider,
                "version": snapshot.version,
                "record-count": snapshot.record_count,
            },
            "balances": dict(snapshot.balances),
        }
        # Dump to a sibling temp file, then rename into place
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                yaml.safe_dump(document, f, default_flow_style=False, sort_keys=False)
            tmp_path.replace(path)
        finally:
            tmp_path.unlink(missing_ok=True)


def load_snapshot(path: Path | str) -> BackupSnapshot:
    """Read a backup artifact written by BackupSnapshotter.

    Raises:
        BackupError: file missing or not a valid snapshot
    """
    path = Path(path)
    try:
        document: Any = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise BackupError(f"Failed to read backup {path}: {e}") from e

    if not isinstance(document, dict) or not isinstance(document.get("migration"), dict):
        raise BackupError(f"Not a migration backup: {path}")

    header = document["migration"]
    balances = document.get("balances") or {}
    try:
        return BackupSnapshot(
            timestamp=datetime.fromisoformat(header["timestamp"]),
            source_provider=header["source-provider"],
            version=str(header.get("version", BACKUP_FORMAT_VERSION)),
            balances={str(k): float(v) for k, v in balances.items()},
            record_count=int(header["record-count"]),
            path=str(path),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise BackupError(f"Malformed backup header in {path}: {e}") from e
