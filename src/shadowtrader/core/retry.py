"""
Retry logic with exponential backoff for transient fetch failures.

Only read paths (positions, activity, quotes, balance) are retried here.
Order submission is never retried automatically.

Usage:
    from shadowtrader.core.retry import retry_transient

    @retry_transient(max_attempts=3)
    async def fetch_positions():
        ...
"""

import asyncio
import inspect
from functools import wraps
from typing import Any, Callable, Optional, TypeVar, Union

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from shadowtrader.core.errors import (
    ErrorCategory,
    NetworkError,
    PermanentError,
    RateLimitError,
    RequestTimeoutError,
    ServiceUnavailableError,
    ShadowTraderError,
    TransientError,
)

log = structlog.get_logger()

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_MIN_WAIT_SECONDS = 1.0
DEFAULT_MAX_WAIT_SECONDS = 10.0
DEFAULT_EXPONENTIAL_MULTIPLIER = 1.0

F = TypeVar("F", bound=Callable[..., Any])


def _create_retry_callback(
    log_context: Optional[dict[str, Any]] = None,
) -> Callable[[RetryCallState], None]:
    context = log_context or {}

    def callback(state: RetryCallState) -> None:
        exception = state.outcome.exception() if state.outcome else None
        log.warning(
            "retry_attempt",
            attempt=state.attempt_number,
            error=str(exception) if exception else None,
            error_type=type(exception).__name__ if exception else None,
            wait_seconds=state.next_action.sleep if state.next_action else 0,
            **context,
        )

    return callback


def retry_transient(
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    min_wait: float = DEFAULT_MIN_WAIT_SECONDS,
    max_wait: float = DEFAULT_MAX_WAIT_SECONDS,
    multiplier: float = DEFAULT_EXPONENTIAL_MULTIPLIER,
    log_context: Optional[dict[str, Any]] = None,
) -> Callable[[F], F]:
    """Decorator to retry an async function on TransientError.

    Args:
        max_attempts: Maximum number of attempts (including initial).
        min_wait: Minimum wait time between retries in seconds.
        max_wait: Maximum wait time between retries in seconds.
        multiplier: Multiplier for exponential backoff.
        log_context: Additional context for log messages.

    Returns:
        Decorator function.
    """

    def decorator(func: F) -> F:
        if not inspect.iscoroutinefunction(func):
            raise TypeError("retry_transient only supports async functions")

        callback = _create_retry_callback(log_context)
        wait_strategy = wait_exponential(multiplier=multiplier, min=min_wait, max=max_wait)

        @wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(max_attempts),
                wait=wait_strategy,
                retry=retry_if_exception_type(TransientError),
                before_sleep=callback,
                reraise=True,
            ):
                with attempt:
                    return await func(*args, **kwargs)

        return async_wrapper  # type: ignore

    return decorator


def classify_error(error: Exception) -> ErrorCategory:
    """Classify an error into a category.

    Args:
        error: The exception to classify.

    Returns:
        ErrorCategory for the error.
    """
    if isinstance(error, ShadowTraderError):
        return error.category

    if isinstance(error, (httpx.TransportError, asyncio.TimeoutError)):
        return ErrorCategory.TRANSIENT

    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        if status == 429 or status >= 500:
            return ErrorCategory.TRANSIENT
        return ErrorCategory.PERMANENT

    error_str = str(error).lower()
    permanent_patterns = [
        "invalid",
        "unauthorized",
        "forbidden",
        "not enough balance",
        "insufficient",
        "rejected",
    ]
    if any(pattern in error_str for pattern in permanent_patterns):
        return ErrorCategory.PERMANENT

    transient_patterns = [
        "timeout",
        "timed out",
        "connection",
        "rate limit",
        "too many requests",
        "service unavailable",
        "temporarily",
    ]
    if any(pattern in error_str for pattern in transient_patterns):
        return ErrorCategory.TRANSIENT

    return ErrorCategory.UNKNOWN


def wrap_external_error(
    error: Exception,
    context: Optional[str] = None,
) -> Union[TransientError, PermanentError]:
    """Wrap an httpx or library error in the matching Shadowtrader error type.

    Args:
        error: The external exception.
        context: Optional context for the error message.

    Returns:
        A TransientError or PermanentError subclass wrapping the original.
    """
    message = f"{context}: {error}" if context else str(error)

    if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError)):
        return RequestTimeoutError(message, cause=error)
    if isinstance(error, httpx.TransportError):
        return NetworkError(message, cause=error)
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        if status == 429:
            retry_after = error.response.headers.get("Retry-After")
            return RateLimitError(
                message,
                retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
                cause=error,
            )
        if status >= 500:
            return ServiceUnavailableError(message, cause=error)
        return PermanentError(message, cause=error)

    if classify_error(error) == ErrorCategory.PERMANENT:
        return PermanentError(message, cause=error)
    return TransientError(message, cause=error)
