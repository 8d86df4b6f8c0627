"""Utility functions shared by the service layer and middleware."""

from collections.abc import Sequence
from decimal import Decimal
from typing import Any

SENSITIVE_KEYWORDS = (
    "password",
    "passwd",
    "token",
    "secret",
    "credential",
    "auth",
    "api_key",
    "private_key",
)


def is_sensitive_field(field_name: str) -> bool:
    """Check if a field name suggests data that must not be logged."""
    field_lower = field_name.lower()
    return any(keyword in field_lower for keyword in SENSITIVE_KEYWORDS)


def truncate(value: str, max_length: int) -> str:
    if len(value) <= max_length:
        return value
    return value[:max_length] + "... [TRUNCATED]"


def format_amount(amount: float | Decimal, symbol: str = "") -> str:
    """Format a balance with two decimals and thousands separators.

    Examples:
        >>> format_amount(1234.5)
        '1,234.50'
        >>> format_amount(Decimal("10"), "$")
        '$10.00'
    """
    return f"{symbol}{amount:,.2f}"


def error_sample(errors: Sequence[str], limit: int, dropped: int = 0) -> list[str]:
    """Return at most ``limit`` errors plus a trailing count of the rest.

    Args:
        errors: Recorded error messages
        limit: Maximum number of messages to show
        dropped: Errors that were counted but never stored

    Returns:
        Lines suitable for display

    Example:
        >>> error_sample(["a", "b", "c"], 2)
        ['a', 'b', '... and 1 more errors']
    """
    shown = list(errors[:limit])
    remaining = len(errors) - len(shown) + dropped
    if remaining > 0:
        shown.append(f"... and {remaining} more errors")
    return shown


def tool_payload(result: Any) -> dict[str, Any]:
    """Return the structured service payload carried by a tool result.

    Handles both ``ToolResult.structured_content`` and plain dict returns,
    unwrapping FastMCP's ``{"result": ...}`` envelope.
    """
    payload = result if isinstance(result, dict) else getattr(result, "structured_content", None)
    if not isinstance(payload, dict):
        return {}
    inner = payload.get("result")
    if "success" not in payload and isinstance(inner, dict):
        return inner
    return payload


def problem_name(problem_type: str | None) -> str | None:
    """Short name of a problem type URI, e.g. ``/problems/backup-error`` -> ``backup-error``."""
    if not problem_type:
        return None
    return problem_type.rstrip("/").rsplit("/", 1)[-1]
