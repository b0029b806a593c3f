"""Core infrastructure - config, errors, logging, retry, scheduling."""

from shadowtrader.core.config import (
    AppConfig,
    CopyTradingConfig,
    PolymarketSettings,
    SlippageAction,
    SlippageConfig,
    load_config,
)
from shadowtrader.core.errors import (
    CancelledError,
    ConfigError,
    InsufficientBalanceError,
    NetworkError,
    OrderRejectedError,
    PermanentError,
    RateLimitError,
    RequestTimeoutError,
    ServiceUnavailableError,
    SetupError,
    ShadowTraderError,
    TransientError,
    ValidationError,
)
from shadowtrader.core.logging import setup_logging
from shadowtrader.core.retry import classify_error, retry_transient, wrap_external_error
from shadowtrader.core.scheduler import CancellationToken, Scheduler

__all__ = [
    # Config
    "AppConfig",
    "CopyTradingConfig",
    "PolymarketSettings",
    "SlippageAction",
    "SlippageConfig",
    "load_config",
    # Errors
    "ShadowTraderError",
    "TransientError",
    "NetworkError",
    "RateLimitError",
    "RequestTimeoutError",
    "ServiceUnavailableError",
    "PermanentError",
    "ValidationError",
    "OrderRejectedError",
    "InsufficientBalanceError",
    "SetupError",
    "ConfigError",
    "CancelledError",
    # Logging
    "setup_logging",
    # Retry
    "retry_transient",
    "classify_error",
    "wrap_external_error",
    # Scheduling
    "CancellationToken",
    "Scheduler",
]
