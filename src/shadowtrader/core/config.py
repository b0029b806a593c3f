"""Configuration management for Shadowtrader.

Connection settings come from the environment through pydantic-settings.
Execution policy (slippage guard, copy sizing) is loaded once per process
into frozen dataclasses via ``from_env()``.
"""

import json
import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings

from shadowtrader.core.errors import ConfigError


class SlippageAction(str, Enum):
    """What the guard does when a quote violates tolerance or depth."""

    WAIT = "wait"
    SKIP = "skip"


class PolymarketSettings(BaseSettings):
    """Polymarket API, wallet and service configuration."""

    # Tracked traders and bot wallet
    user_addresses: str = Field(default="", description="Trader addresses (comma list or JSON array)")
    proxy_wallet: str = Field(default="", description="Bot proxy wallet address")

    # Signing
    private_key: str = Field(default="", description="Polygon wallet private key")
    signature_type: int = Field(default=2, description="0=EOA, 1=Magic, 2=Browser proxy")

    # API credentials (derived from the private key when empty)
    clob_api_key: str = Field(default="", description="CLOB API key")
    clob_secret: str = Field(default="", description="CLOB API secret")
    clob_pass_phrase: str = Field(default="", description="CLOB API passphrase")

    # Endpoints
    clob_http_url: str = Field(default="https://clob.polymarket.com/", description="CLOB HTTP API URL")
    data_api_url: str = Field(
        default="https://data-api.polymarket.com",
        description="Data API URL for positions and activity",
    )
    request_timeout_ms: int = Field(default=10000, description="Timeout for outbound calls")

    # Dashboard API
    dashboard_host: str = Field(default="0.0.0.0", description="Dashboard bind address")
    dashboard_port: int = Field(default=4000, description="Dashboard port")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_json: bool = Field(default=False, description="Enable JSON structured logging")

    model_config = {"env_prefix": "", "extra": "ignore"}

    @property
    def trader_addresses(self) -> List[str]:
        """Tracked trader addresses, de-duplicated, in configured order."""
        raw = self.user_addresses.strip()
        if not raw:
            return []
        if raw.startswith("["):
            try:
                items = json.loads(raw)
            except json.JSONDecodeError as e:
                raise ConfigError(f"USER_ADDRESSES is not a valid JSON array: {e}") from e
        else:
            items = raw.split(",")

        addresses: List[str] = []
        for item in items:
            address = str(item).strip().lower()
            if address and address not in addresses:
                addresses.append(address)
        return addresses

    @property
    def request_timeout_seconds(self) -> float:
        return self.request_timeout_ms / 1000.0


def _env_decimal(name: str, default: str) -> Decimal:
    value = os.getenv(name, default)
    try:
        return Decimal(value.strip())
    except InvalidOperation as e:
        raise ConfigError(f"{name} must be a number, got {value!r}") from e


def _env_int(name: str, default: str) -> int:
    value = os.getenv(name, default)
    try:
        return int(value.strip())
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from e


@dataclass(frozen=True)
class SlippageConfig:
    """Slippage and depth guard policy.

    Attributes:
        max_slippage_pct: Maximum tolerated adverse drift from the reference price.
        wait_ms: Pause between guard retries.
        max_retries: Retries before the guard aborts an order attempt.
        min_book_size_usd: Minimum USD notional at the best price level.
        action: ``wait`` to retry on violation, ``skip`` to abort immediately.
    """

    max_slippage_pct: Decimal = Decimal("1.0")
    wait_ms: int = 30000
    max_retries: int = 20
    min_book_size_usd: Decimal = Decimal("5")
    action: SlippageAction = SlippageAction.WAIT

    def __post_init__(self) -> None:
        if self.max_slippage_pct < 0:
            raise ConfigError("max_slippage_pct must be >= 0")
        if self.wait_ms < 0:
            raise ConfigError("wait_ms must be >= 0")
        if self.max_retries < 0:
            raise ConfigError("max_retries must be >= 0")
        if self.min_book_size_usd < 0:
            raise ConfigError("min_book_size_usd must be >= 0")
        if not isinstance(self.action, SlippageAction):
            raise ConfigError(f"action must be a SlippageAction, got {self.action!r}")

    @property
    def wait_seconds(self) -> float:
        return self.wait_ms / 1000.0

    @property
    def max_wait_seconds(self) -> float:
        """Upper bound on time spent waiting before an abort."""
        return self.wait_seconds * self.max_retries

    @classmethod
    def from_env(cls) -> "SlippageConfig":
        """Load configuration from environment variables."""
        raw_action = os.getenv("SLIPPAGE_ACTION", "wait").strip().lower()
        try:
            action = SlippageAction(raw_action)
        except ValueError as e:
            raise ConfigError(f"SLIPPAGE_ACTION must be 'wait' or 'skip', got {raw_action!r}") from e

        return cls(
            max_slippage_pct=_env_decimal("MAX_SLIPPAGE_PCT", "1.0"),
            wait_ms=_env_int("SLIPPAGE_WAIT_MS", "30000"),
            max_retries=_env_int("SLIPPAGE_MAX_RETRIES", "20"),
            min_book_size_usd=_env_decimal("MIN_BOOK_SIZE_USD", "5"),
            action=action,
        )

    def to_dict(self) -> dict:
        return {
            "maxSlippagePct": float(self.max_slippage_pct),
            "waitMs": self.wait_ms,
            "maxRetries": self.max_retries,
            "minBookSizeUsd": float(self.min_book_size_usd),
            "action": self.action.value,
        }


@dataclass(frozen=True)
class CopyTradingConfig:
    """Copy trading sizing configuration."""

    size_multiplier: Decimal = Decimal("1.0")  # 1.0 = same size as the trader
    max_position_size_usd: Decimal = Decimal("100")
    min_position_size_usd: Decimal = Decimal("1")

    def __post_init__(self) -> None:
        if self.size_multiplier <= 0:
            raise ConfigError("size_multiplier must be > 0")
        if self.min_position_size_usd < 0 or self.max_position_size_usd < self.min_position_size_usd:
            raise ConfigError("copy position bounds must satisfy 0 <= min <= max")

    @classmethod
    def from_env(cls) -> "CopyTradingConfig":
        """Load configuration from environment variables."""
        return cls(
            size_multiplier=_env_decimal("COPY_SIZE_MULTIPLIER", "1.0"),
            max_position_size_usd=_env_decimal("COPY_MAX_POSITION_SIZE", "100"),
            min_position_size_usd=_env_decimal("COPY_MIN_POSITION_SIZE", "1"),
        )

    def to_dict(self) -> dict:
        return {
            "sizeMultiplier": float(self.size_multiplier),
            "maxPositionSizeUsd": float(self.max_position_size_usd),
            "minPositionSizeUsd": float(self.min_position_size_usd),
        }


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""

    polymarket: PolymarketSettings
    slippage: SlippageConfig
    copy_trading: CopyTradingConfig

    @classmethod
    def load(cls) -> "AppConfig":
        """Load all configuration from environment."""
        from dotenv import load_dotenv
        load_dotenv()

        return cls(
            polymarket=PolymarketSettings(),
            slippage=SlippageConfig.from_env(),
            copy_trading=CopyTradingConfig.from_env(),
        )


def load_config() -> AppConfig:
    """Convenience function to load configuration."""
    return AppConfig.load()
