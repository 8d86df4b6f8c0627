"""Request and migration-outcome logging for the ledger_migration tool."""

import time
from typing import Any

from fastmcp.server.middleware import Middleware, MiddlewareContext

from ..core.logging_config import get_middleware_logger
from ..models.enums import MigrationAction
from ..utils import is_sensitive_field, problem_name, tool_payload, truncate

# Service payload keys copied into the per-action log line
OUTCOME_FIELDS = (
    "success",
    "started",
    "running",
    "state",
    "processed",
    "succeeded",
    "failed",
    "total_migrated_balance",
    "verified",
    "provider_switched",
    "backup_path",
)


class LoggingMiddleware(Middleware):
    """Logs every MCP message plus the action and outcome of each tool call.

    Message parameters are sanitized: sensitive fields are redacted and long
    values truncated. Tool calls additionally log which migration action ran
    and the counters it reported.
    """

    def __init__(self, include_payloads: bool = True, max_payload_length: int = 1000):
        """Initialize logging middleware.

        Args:
            include_payloads: Whether to include request parameters in logs
            max_payload_length: Maximum length for logged strings before truncation
        """
        self.logger = get_middleware_logger()
        self.include_payloads = include_payloads
        self.max_payload_length = max_payload_length

    async def on_message(self, context: MiddlewareContext, call_next):
        start_time = time.time()

        log_data: dict[str, Any] = {"method": context.method, "source": context.source}
        if self.include_payloads and hasattr(context.message, "__dict__"):
            log_data["params"] = self._sanitize_message(context.message)
        self.logger.debug("MCP request started", **log_data)

        try:
            result = await call_next(context)
        except Exception as e:
            self.logger.error(
                "MCP request failed",
                method=context.method,
                duration_ms=_elapsed_ms(start_time),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        self.logger.debug(
            "MCP request completed", method=context.method, duration_ms=_elapsed_ms(start_time)
        )
        return result

    async def on_call_tool(self, context: MiddlewareContext, call_next):
        tool = getattr(context.message, "name", None)
        arguments = getattr(context.message, "arguments", None) or {}
        action = str(arguments.get("action") or MigrationAction.STATUS.value)
        start_time = time.time()

        self.logger.info("Migration action requested", tool=tool, action=action)
        result = await call_next(context)

        payload = tool_payload(result)
        outcome = {key: payload[key] for key in OUTCOME_FIELDS if key in payload}
        if problem := problem_name(payload.get("type")):
            outcome["problem"] = problem
            outcome["error"] = truncate(str(payload.get("error", "")), self.max_payload_length)

        log = self.logger.info if payload.get("success", True) else self.logger.warning
        log(
            "Migration action finished",
            tool=tool,
            action=action,
            duration_ms=_elapsed_ms(start_time),
            **outcome,
        )
        return result

    def _sanitize_message(self, message: Any) -> dict[str, Any]:
        sanitized: dict[str, Any] = {}
        for key, value in vars(message).items():
            if key.startswith("_"):
                continue
            if is_sensitive_field(key):
                sanitized[key] = "[REDACTED]"
            elif isinstance(value, dict):
                sanitized[key] = {
                    k: "[REDACTED]" if is_sensitive_field(str(k)) else v for k, v in value.items()
                }
            elif isinstance(value, str):
                sanitized[key] = truncate(value, self.max_payload_length)
            else:
                sanitized[key] = value
        return sanitized


def _elapsed_ms(start_time: float) -> float:
    return round((time.time() - start_time) * 1000, 2)
