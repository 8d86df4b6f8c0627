"""
Migration Service

Operator-facing actions for the balance migration pipeline.
"""

from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from ..constants import ERROR_MESSAGE, SOURCE_PROVIDER, TOTAL_ACCOUNTS, TOTAL_MIGRATED_BALANCE
from ..core.error_response import LedgerBridgeErrorResponse
from ..core.migration import MigrationCoordinator
from ..models.enums import MigrationAction
from ..models.migration import MigrationResult
from ..utils import error_sample, format_amount


class MigrationService:
    """Service for starting migrations and reporting on them."""

    def __init__(self, coordinator: MigrationCoordinator):
        self.coordinator = coordinator
        self.settings = coordinator.settings
        self.logger = structlog.get_logger().bind(component="migration_service")

    async def handle_action(self, action, **params) -> dict[str, Any]:
        """Unified action handler for all migration operations."""
        try:
            if isinstance(action, str):
                try:
                    action = MigrationAction(action.lower().strip())
                except ValueError:
                    return {
                        "success": False,
                        "error": f"Unknown action: {action}",
                        "valid_actions": [a.value for a in MigrationAction],
                    }

            handler = self._get_action_handlers().get(action)
            if handler is None:
                return {
                    "success": False,
                    "error": f"Unknown action: {action}",
                    "valid_actions": [a.value for a in MigrationAction],
                }
            return await handler(**params)
        except Exception as e:
            self.logger.error("migration service action error", action=str(action), error=str(e))
            return LedgerBridgeErrorResponse.generic_error(
                f"Service action failed: {e}", context={"action": str(action)}
            )

    def _get_action_handlers(self) -> dict[MigrationAction, Callable[..., Awaitable[dict[str, Any]]]]:
        return {
            MigrationAction.START: self.start_migration,
            MigrationAction.STATUS: self.get_status,
            MigrationAction.SUPPORTED: self.list_supported,
            MigrationAction.HISTORY: self.get_history,
            MigrationAction.INFO: self.get_info,
            MigrationAction.LEDGERS: self.list_ledgers,
        }

    async def start_migration(
        self,
        create_backup: bool | None = None,
        switch_provider: bool | None = None,
        target_identifier: str | None = None,
        wait: bool = False,
        **_: Any,
    ) -> dict[str, Any]:
        """Start a migration run.

        Args:
            create_backup: Snapshot source balances first (settings default when None)
            switch_provider: Fail over to the target provider afterwards
            target_identifier: Ledger to migrate into, auto-selected when empty
            wait: Await the run and report its result

        Returns:
            Operation result
        """
        if create_backup is None:
            create_backup = self.settings.default_create_backup
        if switch_provider is None:
            switch_provider = self.settings.default_switch_provider

        future = self.coordinator.start(create_backup, switch_provider, target_identifier or None)
        if future.done() and future.result().rejected:
            response = LedgerBridgeErrorResponse.migration_in_progress()
            response["formatted_output"] = "Migration is already in progress!"
            return response

        options = [
            f"Backup: {'Yes' if create_backup else 'No'}",
            f"Switch provider: {'Yes' if switch_provider else 'No'}",
        ]
        if target_identifier:
            options.append(f"Target ledger: {target_identifier}")

        if not wait:
            lines = [
                "Starting balance migration...",
                *options,
                "Migration started in background. Use the 'status' action to check progress.",
            ]
            return {
                "success": True,
                "started": True,
                "create_backup": create_backup,
                "switch_provider": switch_provider,
                "formatted_output": "\n".join(lines),
            }

        result = await future
        response = self._result_response(result)
        response["formatted_output"] = "\n".join([*options, response["formatted_output"]])
        return response

    async def get_status(self, **_: Any) -> dict[str, Any]:
        status = self.coordinator.status()
        if status.running:
            return {
                "success": True,
                "running": True,
                "state": status.state.value,
                "formatted_output": "Migration is currently in progress...",
            }

        response: dict[str, Any] = {"success": True, "running": False, "state": status.state.value}
        result = status.last_result
        if result is None:
            response["formatted_output"] = "No migration has been performed yet."
            return response

        response["last_result"] = self._summary(result)
        response["formatted_output"] = "\n".join(["Last Migration Status:", *self._summary_lines(result)])
        return response

    async def list_supported(self, **_: Any) -> dict[str, Any]:
        providers = self.coordinator.supported_providers()
        lines = ["Supported providers for migration:", *[f"- {name}" for name in providers]]
        return {"success": True, "providers": providers, "formatted_output": "\n".join(lines)}

    async def get_history(self, **_: Any) -> dict[str, Any]:
        """Last result with totals and a bounded error sample."""
        result = self.coordinator.last_result
        if result is None:
            return {
                "success": True,
                "history": [],
                "formatted_output": "No migration history available.",
            }

        summary = self._summary(result)
        lines = ["Migration History:", "Last Migration:", *self._summary_lines(result)]
        stats = result.stats
        if stats is not None:
            lines.append(f"- Total accounts: {stats.total_accounts}")
            lines.append(f"- Total balance: {format_amount(stats.total_migrated_balance)}")
            if stats.errors:
                lines.append(f"Errors encountered ({len(stats.errors) + stats.dropped_errors}):")
                sample = error_sample(stats.errors, self.settings.error_display_limit, stats.dropped_errors)
                lines.extend(f"- {line}" for line in sample)
                summary["errors"] = sample

        return {"success": True, "history": [summary], "formatted_output": "\n".join(lines)}

    async def get_info(self, **_: Any) -> dict[str, Any]:
        providers = self.coordinator.supported_providers()
        lines = [
            "LedgerBridge balance migration",
            "Moves every account balance from the active legacy provider into a ledger",
            f"and can fail the provider registration over to {self.settings.target_provider_name}.",
            "",
            "Phases: detect, backup, resolve target, execute, switch, verify",
            f"Supported providers: {', '.join(providers)}",
        ]
        return {
            "success": True,
            "target_provider": self.settings.target_provider_name,
            "supported_providers": providers,
            "formatted_output": "\n".join(lines),
        }

    async def list_ledgers(self, **_: Any) -> dict[str, Any]:
        ledgers = await self.coordinator.available_ledgers()
        identifiers = [ledger.identifier for ledger in ledgers]
        if identifiers:
            text = "\n".join(["Available ledgers:", *[f"- {name}" for name in identifiers]])
        else:
            text = "No ledgers exist yet; one will be created on migration."
        return {"success": True, "ledgers": identifiers, "formatted_output": text}

    def _result_response(self, result: MigrationResult) -> dict[str, Any]:
        summary = self._summary(result)
        if result.success:
            lines = ["Migration completed successfully!", "Migration Summary:", *self._summary_lines(result)]
            return {**summary, "formatted_output": "\n".join(lines)}

        response = LedgerBridgeErrorResponse.from_result(result)
        response.update({k: v for k, v in summary.items() if k not in response})
        lines = [f"Migration failed: {result.error_message}", *self._summary_lines(result)]
        if result.stats is not None and result.stats.errors:
            lines.append("Errors encountered:")
            sample = error_sample(
                result.stats.errors, self.settings.error_display_limit, result.stats.dropped_errors
            )
            lines.extend(f"- {line}" for line in sample)
        response["formatted_output"] = "\n".join(lines)
        return response

    def _summary(self, result: MigrationResult) -> dict[str, Any]:
        summary: dict[str, Any] = {
            "success": result.success,
            SOURCE_PROVIDER: result.source_provider,
            ERROR_MESSAGE: result.error_message,
            "verified": result.verified,
            "provider_switched": result.provider_switched,
            "backup_path": result.backup_path,
            "warnings": list(result.warnings),
            "completed_at": result.completed_at.isoformat(),
        }
        if result.stats is not None:
            stats = result.stats
            summary.update(
                {
                    TOTAL_ACCOUNTS: stats.total_accounts,
                    "processed": stats.processed,
                    "succeeded": stats.succeeded,
                    "failed": stats.failed,
                    TOTAL_MIGRATED_BALANCE: str(stats.total_migrated_balance),
                }
            )
        return summary

    def _summary_lines(self, result: MigrationResult) -> list[str]:
        lines = [
            f"- Result: {'Success' if result.success else 'Failed'}",
            f"- Source provider: {result.source_provider or 'unknown'}",
        ]
        stats = result.stats
        if stats is not None:
            lines.extend(
                [
                    f"- Accounts processed: {stats.processed}",
                    f"- Successful: {stats.succeeded}",
                    f"- Failed: {stats.failed}",
                    f"- Total balance migrated: {format_amount(stats.total_migrated_balance)}",
                ]
            )
        if result.verified is not None:
            lines.append(f"- Verified: {'Yes' if result.verified else 'No'}")
        if result.provider_switched is not None:
            lines.append(f"- Provider switched: {'Yes' if result.provider_switched else 'No'}")
        if result.backup_path:
            lines.append(f"- Backup: {result.backup_path}")
        if result.error_message and not result.success:
            lines.append(f"- Error: {result.error_message}")
        lines.extend(f"Warning: {warning}" for warning in result.warnings)
        return lines
