"""
Unit tests for the slippage and depth guard.
"""

from decimal import Decimal

import pytest

from shadowtrader.core.config import SlippageAction, SlippageConfig
from shadowtrader.domain.market import OrderSide
from shadowtrader.services.guard import (
    MAX_RETRIES_REASON,
    Decision,
    SlippageGuard,
    adverse_drift,
)
from tests.fixtures.factories import make_quote


class TestAdverseDrift:

    def test_buy_hurt_by_rising_price(self):
        assert adverse_drift(OrderSide.BUY, Decimal("2")) == Decimal("2")

    def test_sell_hurt_by_falling_price(self):
        assert adverse_drift(OrderSide.SELL, Decimal("-2")) == Decimal("2")
        assert adverse_drift(OrderSide.SELL, Decimal("3")) == Decimal("-3")


class TestProceed:

    def test_buy_within_tolerance(self, slippage_config):
        guard = SlippageGuard(slippage_config)

        decision = guard.evaluate(Decimal("0.50"), OrderSide.BUY, make_quote(ask="0.502"))

        assert decision.should_proceed
        assert decision.live_price == Decimal("0.502")
        assert decision.drift_pct == Decimal("0.4")

    def test_drift_exactly_at_limit_proceeds(self, slippage_config):
        """Reference 0.50, ask 0.505, limit 1% -> drift 1.0% proceeds."""
        guard = SlippageGuard(slippage_config)

        decision = guard.evaluate(Decimal("0.50"), OrderSide.BUY, make_quote(ask="0.505"))

        assert decision.should_proceed
        assert decision.adverse_drift_pct == Decimal("1")

    def test_depth_exactly_at_minimum_proceeds(self, slippage_config):
        guard = SlippageGuard(slippage_config)
        # 0.50 x 10 = $5.00
        quote = make_quote(ask="0.50", ask_size="10")

        decision = guard.evaluate(Decimal("0.50"), OrderSide.BUY, quote)

        assert decision.should_proceed
        assert decision.depth_usd == Decimal("5.00")

    def test_sell_with_favourable_drift(self, slippage_config):
        """A SELL is never blocked by the bid rising above the reference."""
        guard = SlippageGuard(slippage_config)

        decision = guard.evaluate(Decimal("0.50"), OrderSide.SELL, make_quote(bid="0.60"))

        assert decision.should_proceed
        assert decision.adverse_drift_pct == Decimal("-20")

    def test_buy_with_favourable_drift(self, slippage_config):
        guard = SlippageGuard(slippage_config)

        decision = guard.evaluate(Decimal("0.50"), OrderSide.BUY, make_quote(ask="0.40"))

        assert decision.should_proceed


class TestViolations:

    def test_buy_drift_over_limit_retries(self, slippage_config):
        guard = SlippageGuard(slippage_config)

        decision = guard.evaluate(Decimal("0.50"), OrderSide.BUY, make_quote(ask="0.51"))

        assert decision.should_retry
        assert "adverse drift" in decision.reason

    def test_sell_drift_over_limit_retries(self, slippage_config):
        guard = SlippageGuard(slippage_config)

        decision = guard.evaluate(Decimal("0.50"), OrderSide.SELL, make_quote(bid="0.49"))

        assert decision.should_retry

    def test_thin_book_retries(self, slippage_config):
        guard = SlippageGuard(slippage_config)
        quote = make_quote(bid="0.50", bid_size="9")

        decision = guard.evaluate(Decimal("0.50"), OrderSide.SELL, quote)

        assert decision.should_retry
        assert "book depth" in decision.reason

    def test_both_violations_reported(self, slippage_config):
        guard = SlippageGuard(slippage_config)
        quote = make_quote(ask="0.60", ask_size="1")

        decision = guard.evaluate(Decimal("0.50"), OrderSide.BUY, quote)

        assert "adverse drift" in decision.reason
        assert "book depth" in decision.reason

    def test_empty_side_is_violation(self, slippage_config):
        guard = SlippageGuard(slippage_config)

        decision = guard.evaluate(Decimal("0.50"), OrderSide.SELL, make_quote(bid=None))

        assert decision.should_retry
        assert decision.live_price is None
        assert "no bids" in decision.reason

    def test_uses_side_of_book_the_order_hits(self, slippage_config):
        """A SELL checks the bid even when the ask is far away."""
        guard = SlippageGuard(slippage_config)
        quote = make_quote(bid="0.50", ask="0.90")

        assert guard.evaluate(Decimal("0.50"), OrderSide.SELL, quote).should_proceed
        assert not guard.evaluate(Decimal("0.50"), OrderSide.BUY, quote).should_proceed


class TestAbort:

    def test_skip_action_aborts_on_first_violation(self, skip_config):
        guard = SlippageGuard(skip_config)

        decision = guard.evaluate(Decimal("0.50"), OrderSide.BUY, make_quote(ask="0.60"))

        assert decision.is_abort
        assert "adverse drift" in decision.reason

    def test_retries_exhausted(self):
        guard = SlippageGuard(SlippageConfig(max_retries=3))
        quote = make_quote(ask="0.60")

        assert guard.evaluate(Decimal("0.50"), OrderSide.BUY, quote, attempt=2).should_retry
        decision = guard.evaluate(Decimal("0.50"), OrderSide.BUY, quote, attempt=3)

        assert decision.is_abort
        assert decision.reason == MAX_RETRIES_REASON

    def test_zero_retries_aborts_immediately(self):
        guard = SlippageGuard(SlippageConfig(max_retries=0))

        decision = guard.evaluate(Decimal("0.50"), OrderSide.BUY, make_quote(ask="0.60"))

        assert decision.is_abort

    @pytest.mark.parametrize("reference", ["0", "-0.1"])
    def test_non_positive_reference_aborts(self, slippage_config, reference):
        guard = SlippageGuard(slippage_config)

        decision = guard.evaluate(Decimal(reference), OrderSide.SELL, make_quote())

        assert decision.is_abort
        assert "invalid reference price" in decision.reason

    def test_abort_ignores_action(self):
        """An invalid reference aborts even under the wait policy."""
        guard = SlippageGuard(SlippageConfig(action=SlippageAction.WAIT))

        assert guard.evaluate(Decimal("0"), OrderSide.BUY, make_quote()).decision == Decision.ABORT
