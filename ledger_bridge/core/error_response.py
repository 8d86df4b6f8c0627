"""RFC 7807 compliant error response helpers.

Problem Details for HTTP APIs, adapted for MCP tool responses.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from ..models.enums import MigrationPhase
from ..models.migration import MigrationResult


class ErrorDetail(BaseModel):
    """RFC 7807 compliant error detail structure.

    Required fields:
    - success: Always False for error responses
    - error: Human-readable error message

    Optional RFC 7807 fields:
    - type: URI reference that identifies the problem type
    - title: Short, human-readable summary of the problem type
    - detail: Human-readable explanation specific to this occurrence
    - instance: URI reference that identifies the specific occurrence
    """

    success: bool = Field(default=False, description="Always False for errors")
    error: str = Field(description="Human-readable error message")
    type: str | None = Field(default=None, description="Problem type URI")
    title: str | None = Field(default=None, description="Problem type summary")
    detail: str | None = Field(default=None, description="Specific problem details")
    instance: str | None = Field(default=None, description="Problem occurrence URI")
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())


class LedgerBridgeErrorResponse:
    """Factory for creating standardized LedgerBridge error responses."""

    PROBLEM_TYPES: dict[str, dict[str, str]] = {
        "detection-error": {
            "type": "/problems/detection-error",
            "title": "Source Provider Not Usable",
        },
        "backup-error": {
            "type": "/problems/backup-error",
            "title": "Backup Operation Failed",
        },
        "target-resolution-error": {
            "type": "/problems/target-resolution-error",
            "title": "Target Ledger Unavailable",
        },
        "migration-in-progress": {
            "type": "/problems/migration-in-progress",
            "title": "Migration Already Running",
        },
        "migration-error": {
            "type": "/problems/migration-error",
            "title": "Migration Failed",
        },
        "validation-error": {
            "type": "/problems/validation-error",
            "title": "Input Validation Failed",
        },
        "configuration-error": {
            "type": "/problems/configuration-error",
            "title": "Configuration Error",
        },
    }

    RESERVED_FIELDS = frozenset(
        {"success", "error", "type", "title", "detail", "instance", "timestamp"}
    )

    @classmethod
    def create_error(
        cls,
        error_message: str,
        problem_type: str | None = None,
        detail: str | None = None,
        instance: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Create a standardized error response.

        Args:
            error_message: Primary error message
            problem_type: Standard problem type key or custom type URI
            detail: Additional problem-specific details
            instance: Identifier for this specific occurrence
            context: Additional context fields (source_provider, ledger, etc.)

        Returns:
            RFC 7807 compliant error response dictionary
        """
        error_detail = ErrorDetail(error=error_message, detail=detail, instance=instance)

        if problem_type and problem_type in cls.PROBLEM_TYPES:
            problem_info = cls.PROBLEM_TYPES[problem_type]
            error_detail.type = problem_info["type"]
            error_detail.title = problem_info["title"]
        elif problem_type:
            error_detail.type = problem_type

        response = error_detail.model_dump(exclude_none=True)

        if context:
            response.update({k: v for k, v in context.items() if k not in cls.RESERVED_FIELDS})

        return response

    @classmethod
    def migration_in_progress(cls) -> dict[str, Any]:
        return cls.create_error(
            error_message="Migration already in progress",
            problem_type="migration-in-progress",
            detail="Wait for the running migration to finish, then check its status.",
            instance="/migrations/current",
        )

    @classmethod
    def validation_error(cls, field: str, value: Any, reason: str) -> dict[str, Any]:
        """Standard validation error."""
        return cls.create_error(
            error_message=f"Validation failed for '{field}': {reason}",
            problem_type="validation-error",
            detail=f"The value '{value}' for field '{field}' is invalid: {reason}",
            instance=f"/validation/{field}",
            context={"field": field, "value": str(value), "reason": reason},
        )

    PHASE_PROBLEM_TYPES: dict[MigrationPhase, str] = {
        MigrationPhase.DETECT: "detection-error",
        MigrationPhase.BACKUP: "backup-error",
        MigrationPhase.RESOLVE_TARGET: "target-resolution-error",
    }

    @classmethod
    def from_result(cls, result: MigrationResult) -> dict[str, Any]:
        """Problem response for a failed run, typed by the phase that aborted it."""
        problem_type = cls.PHASE_PROBLEM_TYPES.get(result.failed_phase, "migration-error")
        context: dict[str, Any] = {"source_provider": result.source_provider}
        if result.failed_phase is not None:
            context["phase"] = result.failed_phase.value
        if result.warnings:
            context["warnings"] = list(result.warnings)
        return cls.create_error(
            error_message=result.error_message or "Migration failed",
            problem_type=problem_type,
            instance="/migrations/last",
            context=context,
        )

    @classmethod
    def generic_error(
        cls,
        error_message: str,
        context: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Generic error response for unexpected errors."""
        return cls.create_error(
            error_message=error_message,
            context=context or {},
        )
