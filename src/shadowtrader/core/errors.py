"""
Error type hierarchy for Shadowtrader.

Errors are split by whether a retry can help:
- TransientError: network issues, rate limits, timeouts - clients retry these
- PermanentError: rejected orders, bad input - never retried
- SetupError / ConfigError: the run cannot start at all
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class ErrorCategory(str, Enum):
    """Classification of error types for retry decisions."""

    TRANSIENT = "transient"  # Network issues, rate limits - should retry
    PERMANENT = "permanent"  # Bad request, rejected order - should NOT retry
    UNKNOWN = "unknown"  # Unclassified


class ShadowTraderError(Exception):
    """Base exception for all Shadowtrader errors."""

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message} (caused by: {self.cause})"
        return self.message


class TransientError(ShadowTraderError):
    """Error that may succeed on retry."""

    category = ErrorCategory.TRANSIENT


class NetworkError(TransientError):
    """Network-related transient error."""

    pass


class RateLimitError(TransientError):
    """Rate limit exceeded - should retry after backoff."""

    def __init__(
        self,
        message: str,
        retry_after: Optional[float] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message, cause)
        self.retry_after = retry_after


class RequestTimeoutError(TransientError):
    """Call to an external service timed out."""

    pass


class ServiceUnavailableError(TransientError):
    """External service is temporarily unavailable."""

    pass


class PermanentError(ShadowTraderError):
    """Error that will NOT succeed on retry."""

    category = ErrorCategory.PERMANENT


class ValidationError(PermanentError):
    """Request validation failed - fix the input."""

    pass


class OrderRejectedError(PermanentError):
    """Order was rejected by the exchange."""

    pass


class InsufficientBalanceError(OrderRejectedError):
    """Order rejected for lack of balance or allowance."""

    pass


class SetupError(ShadowTraderError):
    """Process could not be set up (trading client, positions feed).

    Fatal: the run aborts before any task executes.
    """

    category = ErrorCategory.PERMANENT


class ConfigError(SetupError):
    """Configuration value missing or invalid."""

    pass


class CancelledError(ShadowTraderError):
    """A cancellation token was set while waiting."""

    pass
