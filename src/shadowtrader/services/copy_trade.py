"""Copy-trade driver.

Sizes a mirror order for one trader trade and sends it through the same
guarded execution loop as reconciliation exits, using the trader's own
execution price as the reference.
"""

from decimal import ROUND_DOWN, Decimal
from typing import Optional

import structlog

from shadowtrader.core.config import CopyTradingConfig
from shadowtrader.domain.market import OrderSide
from shadowtrader.domain.order import CopyInstruction
from shadowtrader.domain.position import ActivityRecord, Position
from shadowtrader.services.execution import ExecutionOutcome, ExecutionRetryLoop, aborted

log = structlog.get_logger()

SHARE_PRECISION = Decimal("0.01")


class CopyTradeDriver:
    """Mirrors trader trades into the bot wallet."""

    def __init__(self, loop: ExecutionRetryLoop, config: CopyTradingConfig):
        self._loop = loop
        self.config = config
        self._log = log.bind(component="copy_trade")

    def size_buy(self, activity: ActivityRecord, available_balance: Decimal) -> Decimal:
        """USD notional for a copied BUY, 0 when it should be skipped."""
        notional = activity.usdc_size * self.config.size_multiplier
        notional = min(notional, self.config.max_position_size_usd, available_balance)
        if notional < self.config.min_position_size_usd or notional <= 0:
            return Decimal("0")
        return notional

    def size_sell(self, activity: ActivityRecord, bot_position: Optional[Position]) -> Decimal:
        """Shares for a copied SELL, capped at what the bot holds."""
        if bot_position is None or bot_position.size <= 0:
            return Decimal("0")
        return min(bot_position.size, activity.size * self.config.size_multiplier)

    async def copy(
        self,
        activity: ActivityRecord,
        available_balance: Decimal,
        bot_position: Optional[Position] = None,
    ) -> ExecutionOutcome:
        """Copy one activity record.

        Args:
            activity: Trader activity entry; only TRADE records are copied.
            available_balance: Bot wallet collateral available for BUYs.
            bot_position: Bot's current holding of the same outcome, for SELLs.

        Returns:
            ExecutionOutcome; skips are ABORTED with a reason.
        """
        if not activity.is_trade:
            return aborted(None, f"not a trade ({activity.type or 'unknown'})")
        if activity.side not in (OrderSide.BUY.value, OrderSide.SELL.value):
            return aborted(None, f"unknown side {activity.side!r}")
        if activity.price <= 0:
            return aborted(None, "trade has no price")

        if activity.side == OrderSide.BUY.value:
            notional = self.size_buy(activity, available_balance)
            if notional <= 0:
                self._log.info(
                    "copy_skipped",
                    label=activity.label,
                    reason="below minimum size or no balance",
                    trader_usdc=str(activity.usdc_size),
                    available=str(available_balance),
                )
                return aborted(None, "below minimum size or no balance")
            quantity = (notional / activity.price).quantize(SHARE_PRECISION, rounding=ROUND_DOWN)
        else:
            quantity = self.size_sell(activity, bot_position).quantize(
                SHARE_PRECISION, rounding=ROUND_DOWN
            )
            if quantity <= 0:
                self._log.info("copy_skipped", label=activity.label, reason="no bot position to sell")
                return aborted(None, "no bot position to sell")

        instruction = CopyInstruction.for_activity(activity, quantity)
        self._log.info(
            "copy_trade",
            label=activity.label,
            side=activity.side,
            quantity=str(quantity),
            trader_price=str(activity.price),
            transaction=activity.transaction_hash,
        )
        return await self._loop.execute(instruction)
