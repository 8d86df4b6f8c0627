"""Error classification for the ledger_migration tool.

Raised exceptions and failed migration responses are both mapped onto the
problem types the service reports.
"""

from collections import defaultdict
from typing import Any

from fastmcp.server.middleware import Middleware, MiddlewareContext
from pydantic import ValidationError

from ..core.exceptions import (
    BackupError,
    ConfigurationError,
    DetectionError,
    LedgerBridgeError,
    TargetResolutionError,
)
from ..core.logging_config import get_middleware_logger
from ..utils import is_sensitive_field, problem_name, tool_payload

# Most specific first; LedgerBridgeError catches the remaining domain errors
EXCEPTION_PROBLEMS: tuple[tuple[type[Exception], str], ...] = (
    (DetectionError, "detection-error"),
    (BackupError, "backup-error"),
    (TargetResolutionError, "target-resolution-error"),
    (ConfigurationError, "configuration-error"),
    (ValidationError, "validation-error"),
    (LedgerBridgeError, "migration-error"),
)

# Expected refusals and phase failures; anything else is logged as an error
INFO_PROBLEMS = frozenset({"migration-in-progress"})
WARNING_PROBLEMS = frozenset(
    {"validation-error", "detection-error", "backup-error", "target-resolution-error"}
)


def classify_exception(error: Exception) -> str:
    """Problem name for a raised exception, ``internal-error`` when unknown."""
    for error_class, problem in EXCEPTION_PROBLEMS:
        if isinstance(error, error_class):
            return problem
    return "internal-error"


class ErrorHandlingMiddleware(Middleware):
    """Tracks raised errors and failed migration responses by problem type.

    Errors are always re-raised so FastMCP formats them for the client.
    """

    def __init__(self, include_traceback: bool = True, track_error_stats: bool = True):
        """Initialize error handling middleware.

        Args:
            include_traceback: Whether to include full stack traces in logs
            track_error_stats: Whether to track error statistics
        """
        self.logger = get_middleware_logger()
        self.include_traceback = include_traceback
        self.track_error_stats = track_error_stats

        self.error_stats: dict[str, int] = defaultdict(int)
        self.problem_stats: dict[str, int] = defaultdict(int)
        self.failed_responses = 0

    async def on_message(self, context: MiddlewareContext, call_next):
        try:
            return await call_next(context)
        except Exception as e:
            self._handle_error(e, context)
            raise

    async def on_call_tool(self, context: MiddlewareContext, call_next):
        result = await call_next(context)

        payload = tool_payload(result)
        if payload.get("success", True) is False:
            self._handle_failed_response(payload, context)
        return result

    def _handle_error(self, error: Exception, context: MiddlewareContext) -> None:
        error_type = type(error).__name__
        method = context.method
        problem = classify_exception(error)

        if self.track_error_stats:
            self.error_stats[f"{error_type}:{method}"] += 1
            self.problem_stats[problem] += 1

        error_data: dict[str, Any] = {
            "error_type": error_type,
            "error_message": str(error),
            "problem": problem,
            "method": method,
            "source": context.source,
        }
        if isinstance(error, DetectionError):
            error_data["detection_reason"] = error.reason.value

        if self.track_error_stats:
            error_data["error_occurrence_count"] = self.error_stats[f"{error_type}:{method}"]
            error_data["problem_count"] = self.problem_stats[problem]

        if hasattr(context.message, "__dict__"):
            error_data["message_context"] = {
                key: str(value)[:100]
                for key, value in vars(context.message).items()
                if not key.startswith("_") and not is_sensitive_field(key)
            }

        if isinstance(error, SystemError | MemoryError | RecursionError):
            self.logger.critical(
                "Critical error in migration request", **error_data, exc_info=self.include_traceback
            )
        elif problem in WARNING_PROBLEMS or isinstance(error, TimeoutError | PermissionError):
            self.logger.warning("Migration request rejected", **error_data, exc_info=False)
        else:
            self.logger.error(
                "Error in migration request", **error_data, exc_info=self.include_traceback
            )

    def _handle_failed_response(self, payload: dict[str, Any], context: MiddlewareContext) -> None:
        problem = problem_name(payload.get("type")) or "migration-error"
        if self.track_error_stats:
            self.failed_responses += 1
            self.problem_stats[problem] += 1

        arguments = getattr(context.message, "arguments", None) or {}
        log_data: dict[str, Any] = {
            "problem": problem,
            "action": arguments.get("action"),
            "error_message": payload.get("error"),
        }
        if "phase" in payload:
            log_data["phase"] = payload["phase"]
        if self.track_error_stats:
            log_data["problem_count"] = self.problem_stats[problem]

        if problem in INFO_PROBLEMS:
            self.logger.info("Migration action refused", **log_data)
        elif problem in WARNING_PROBLEMS:
            self.logger.warning("Migration action failed", **log_data)
        else:
            self.logger.error("Migration action failed", **log_data)

    def get_error_statistics(self) -> dict[str, Any]:
        if not self.track_error_stats:
            return {"error_tracking": "disabled"}

        top_errors = sorted(self.error_stats.items(), key=lambda x: x[1], reverse=True)[:10]
        return {
            "total_errors": sum(self.error_stats.values()),
            "unique_error_types": len(self.error_stats),
            "top_errors": top_errors,
            "error_distribution": dict(self.error_stats),
            "failed_responses": self.failed_responses,
            "problem_distribution": dict(self.problem_stats),
        }

    def reset_statistics(self) -> None:
        self.error_stats.clear()
        self.problem_stats.clear()
        self.failed_responses = 0
        self.logger.info("Error statistics reset")
