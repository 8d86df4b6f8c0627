"""FastMCP middleware for the LedgerBridge server.

- LoggingMiddleware: structured request/response logging to console and middleware.log
- ErrorHandlingMiddleware: error tracking and categorization
"""

from .error_handling import ErrorHandlingMiddleware
from .logging import LoggingMiddleware

__all__ = ["ErrorHandlingMiddleware", "LoggingMiddleware"]
