"""Shared pytest fixtures for Shadowtrader tests.

This file provides common fixtures used across all test modules:
- Slippage and copy-trading configuration
- A fake-clock scheduler
- Mock quote source and order submitter
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from shadowtrader.core.config import CopyTradingConfig, SlippageAction, SlippageConfig
from tests.fixtures.factories import FakeScheduler, make_order_result, make_quote


# =============================================================================
# Configuration Fixtures
# =============================================================================

@pytest.fixture
def slippage_config() -> SlippageConfig:
    """Default guard policy: 1% tolerance, $5 depth, wait 30s, 20 retries."""
    return SlippageConfig()


@pytest.fixture
def skip_config() -> SlippageConfig:
    return SlippageConfig(action=SlippageAction.SKIP)


@pytest.fixture
def copy_config() -> CopyTradingConfig:
    return CopyTradingConfig(
        size_multiplier=Decimal("1.0"),
        max_position_size_usd=Decimal("100"),
        min_position_size_usd=Decimal("1"),
    )


# =============================================================================
# Scheduler / Collaborator Fixtures
# =============================================================================

@pytest.fixture
def fake_scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def quote_source() -> AsyncMock:
    """Quote source returning a 0.49 / 0.51 book, 100 shares each side."""
    source = AsyncMock()
    source.get_quote.return_value = make_quote()
    return source


@pytest.fixture
def submitter() -> AsyncMock:
    sink = AsyncMock()
    sink.submit.return_value = make_order_result()
    return sink
