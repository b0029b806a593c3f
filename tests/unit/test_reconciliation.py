"""
Unit tests for reconciliation of stale bot positions.
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from shadowtrader.core.errors import OrderRejectedError
from shadowtrader.domain.market import OrderSide
from shadowtrader.domain.order import ExitInstruction, ReconcileTask
from shadowtrader.services.execution import ExecutionRetryLoop, LoopState
from shadowtrader.services.reconciliation import (
    INTER_TASK_PAUSE_SECONDS,
    BalanceLedger,
    ReconciliationDriver,
)
from tests.fixtures.factories import FakeScheduler, make_order_result, make_position


@pytest.fixture
def balances() -> AsyncMock:
    source = AsyncMock()
    source.get_balance.return_value = Decimal("250")
    return source


def build_driver(config, quotes, submitter, balances, scheduler) -> ReconciliationDriver:
    loop = ExecutionRetryLoop(config, quotes, submitter, scheduler=scheduler)
    return ReconciliationDriver(loop, balances, scheduler=scheduler)


class TestExitInstruction:

    def test_sells_full_size_at_current_price(self):
        position = make_position("B", "Down", avg_price="0.30", cur_price="0.35", size="42.5")

        instruction = ExitInstruction.for_position(position)

        assert instruction.side == OrderSide.SELL
        assert instruction.quantity == Decimal("42.5")
        assert instruction.reference_price == Decimal("0.35")
        assert instruction.token_id == position.asset
        assert instruction.caller == "reconcile"

    def test_falls_back_to_avg_price(self):
        position = make_position("B", avg_price="0.30", cur_price="0")

        assert ExitInstruction.for_position(position).reference_price == Decimal("0.30")

    def test_falls_back_to_midpoint(self):
        position = make_position("B", avg_price="0", cur_price="0")

        assert ExitInstruction.for_position(position).reference_price == Decimal("0.5")


class TestBalanceLedger:

    def test_sell_credits_filled_notional(self):
        ledger = BalanceLedger.open(Decimal("100"))

        ledger.apply(make_order_result(side=OrderSide.SELL, price="0.50", size="10"))

        assert ledger.available == Decimal("105.00")
        assert ledger.starting == Decimal("100")

    def test_buy_debits_filled_notional(self):
        ledger = BalanceLedger.open(Decimal("100"))

        ledger.apply(make_order_result(side=OrderSide.BUY, price="0.40", size="10"))

        assert ledger.available == Decimal("96.00")

    def test_unfilled_order_leaves_balance(self):
        ledger = BalanceLedger.open(Decimal("100"))

        ledger.apply(make_order_result(filled="0"))

        assert ledger.available == Decimal("100")


class TestReconcile:

    @pytest.mark.asyncio
    async def test_nothing_stale_makes_no_calls(
        self, slippage_config, quote_source, submitter, balances, fake_scheduler
    ):
        """Bot holds only what the trader holds: no balance fetch, no orders."""
        driver = build_driver(slippage_config, quote_source, submitter, balances, fake_scheduler)
        trader = [make_position("A")]
        bot = [make_position("A", proxy_wallet="0xbot")]

        report = await driver.reconcile(trader, bot)

        assert report.results == []
        assert not report.balance_fetched
        balances.get_balance.assert_not_awaited()
        quote_source.get_quote.assert_not_awaited()
        submitter.submit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stale_position_sold_in_full(
        self, slippage_config, quote_source, submitter, balances, fake_scheduler
    ):
        """Trader holds A|Up, bot holds A|Up and B|Down -> one SELL of B|Down."""
        driver = build_driver(slippage_config, quote_source, submitter, balances, fake_scheduler)
        stale = make_position("B", "Down", outcome_index=1, size="12", cur_price="0.49")
        trader = [make_position("A", "Up")]
        bot = [make_position("A", "Up"), stale]

        report = await driver.reconcile(trader, bot)

        assert len(report.results) == 1
        position, outcome = report.results[0]
        assert position is stale
        assert outcome.state == LoopState.SUCCEEDED
        instruction = submitter.submit.await_args.args[0]
        assert instruction.side == OrderSide.SELL
        assert instruction.quantity == Decimal("12")
        assert instruction.token_id == stale.asset
        balances.get_balance.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_closed_bot_positions_ignored(
        self, slippage_config, quote_source, submitter, balances, fake_scheduler
    ):
        driver = build_driver(slippage_config, quote_source, submitter, balances, fake_scheduler)

        report = await driver.reconcile([], [make_position("A", current_value="0")])

        assert report.results == []
        submitter.submit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_pass(
        self, slippage_config, quote_source, submitter, balances, fake_scheduler
    ):
        """Task 2 of 3 fails on submission; task 3 still runs."""
        submitter.submit.side_effect = [
            make_order_result(),
            OrderRejectedError("rejected"),
            make_order_result(),
        ]
        driver = build_driver(slippage_config, quote_source, submitter, balances, fake_scheduler)
        stale = [make_position(t, cur_price="0.49") for t in ("A", "B", "C")]

        report = await driver.reconcile([], stale)

        states = [outcome.state for _, outcome in report.results]
        assert states == [LoopState.SUCCEEDED, LoopState.FAILED, LoopState.SUCCEEDED]
        assert [p.title for p, _ in report.results] == ["A", "B", "C"]
        assert submitter.submit.await_count == 3
        assert report.succeeded == 2
        assert report.failed == 1

    @pytest.mark.asyncio
    async def test_unexpected_error_recorded(
        self, slippage_config, quote_source, submitter, balances, fake_scheduler
    ):
        loop = AsyncMock(spec=ExecutionRetryLoop)
        loop.execute.side_effect = RuntimeError("boom")
        driver = ReconciliationDriver(loop, balances, scheduler=fake_scheduler)

        report = await driver.reconcile([], [make_position("A"), make_position("B")])

        assert report.failed == 2
        assert report.results[0][1].reason == "unexpected error"

    @pytest.mark.asyncio
    async def test_pause_after_every_task(
        self, slippage_config, quote_source, submitter, balances, fake_scheduler
    ):
        driver = build_driver(slippage_config, quote_source, submitter, balances, fake_scheduler)
        stale = [make_position(t, cur_price="0.49") for t in ("A", "B")]

        await driver.reconcile([], stale)

        assert fake_scheduler.sleeps == [INTER_TASK_PAUSE_SECONDS, INTER_TASK_PAUSE_SECONDS]

    @pytest.mark.asyncio
    async def test_balance_fetched_once_and_adjusted(
        self, slippage_config, quote_source, submitter, balances, fake_scheduler
    ):
        submitter.submit.return_value = make_order_result(price="0.50", size="10")
        driver = build_driver(slippage_config, quote_source, submitter, balances, fake_scheduler)
        stale = [make_position(t, cur_price="0.49") for t in ("A", "B")]

        report = await driver.reconcile([], stale)

        balances.get_balance.assert_awaited_once()
        assert report.balance.starting == Decimal("250")
        assert report.balance.available == Decimal("260.00")

    @pytest.mark.asyncio
    async def test_balance_failure_propagates(
        self, slippage_config, quote_source, submitter, balances, fake_scheduler
    ):
        balances.get_balance.side_effect = OrderRejectedError("unauthorized")
        driver = build_driver(slippage_config, quote_source, submitter, balances, fake_scheduler)

        with pytest.raises(OrderRejectedError):
            await driver.reconcile([], [make_position("A")])
        submitter.submit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancellation_reports_remaining_as_aborted(
        self, slippage_config, quote_source, submitter, balances
    ):
        """Cancelled during the pause after task 1: tasks 2 and 3 are aborted, not run."""
        scheduler = FakeScheduler(cancel_after_sleeps=1)
        driver = build_driver(slippage_config, quote_source, submitter, balances, scheduler)
        stale = [make_position(t, cur_price="0.49") for t in ("A", "B", "C")]

        report = await driver.reconcile([], stale)

        states = [outcome.state for _, outcome in report.results]
        assert states == [LoopState.SUCCEEDED, LoopState.ABORTED, LoopState.ABORTED]
        assert report.results[1][1].reason == "cancelled"
        submitter.submit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_report_to_dict(
        self, slippage_config, quote_source, submitter, balances, fake_scheduler
    ):
        driver = build_driver(slippage_config, quote_source, submitter, balances, fake_scheduler)

        report = await driver.reconcile([], [make_position("A", cur_price="0.49")])
        data = report.to_dict()

        assert data["stale"] == 1
        assert data["succeeded"] == 1
        assert data["startingBalance"] == 250.0
        assert data["results"][0]["state"] == "succeeded"


class TestReconcileTask:

    def test_from_position(self):
        position = make_position("A")

        task = ReconcileTask.from_position(position)

        assert task.position is position
        assert task.instruction.quantity == position.size
