"""Portfolio analytics shown alongside the drift report."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from shadowtrader.domain.position import ActivityRecord, Position

# A bot trade counts as a copy if it lands within this window of the trader's
COPY_DELAY_WINDOW_SECONDS = 300
# Wider window for the per-trade comparison table
TRADE_COMPARISON_WINDOW_SECONDS = 600

_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class PortfolioSummary:
    open_count: int
    total_value: Decimal
    total_pnl: Decimal
    best: Optional[Position]
    worst: Optional[Position]

    def to_dict(self) -> dict:
        return {
            "openCount": self.open_count,
            "totalValue": float(self.total_value),
            "totalPnl": float(self.total_pnl),
            "best": {"label": self.best.label, "pnl": float(self.best.pnl)} if self.best else None,
            "worst": {"label": self.worst.label, "pnl": float(self.worst.pnl)} if self.worst else None,
        }


def portfolio_summary(positions: Iterable[Position]) -> PortfolioSummary:
    """Value over open positions; PnL over all, closed ones included."""
    positions = list(positions)
    open_positions = [p for p in positions if p.is_open]
    ranked = sorted(positions, key=lambda p: p.pnl, reverse=True)
    best = ranked[0] if ranked else None
    worst = ranked[-1] if len(ranked) > 1 else None
    return PortfolioSummary(
        open_count=len(open_positions),
        total_value=sum((p.current_value for p in open_positions), Decimal("0")),
        total_pnl=sum((p.pnl for p in positions), Decimal("0")),
        best=best,
        worst=worst,
    )


def average_size_ratio(
    trader_positions: Iterable[Position],
    bot_positions: Iterable[Position],
) -> Decimal:
    """Mean bot/trader size ratio over markets both hold."""
    bot_by_key = {p.market_key: p for p in bot_positions}
    shared = [p for p in trader_positions if p.market_key in bot_by_key]
    if not shared:
        return Decimal("0")

    total = Decimal("0")
    for trader in shared:
        if trader.size > 0:
            total += bot_by_key[trader.market_key].size / trader.size
    return total / len(shared)



def _copied_trades(
    trader_activity: Iterable[ActivityRecord],
    bot_activity: Iterable[ActivityRecord],
    window_seconds: int,
) -> List[Tuple[ActivityRecord, ActivityRecord]]:
    """Pair each trader trade with the first bot trade copying it.

    A copy is a bot trade on the same condition and side, strictly after the
    trader's and less than ``window_seconds`` later.
    """
    bot_trades = [a for a in bot_activity if a.is_trade]
    pairs = []
    for trade in trader_activity:
        if not trade.is_trade:
            continue
        for bot in bot_trades:
            delay = bot.timestamp - trade.timestamp
            if (
                bot.condition_id == trade.condition_id
                and bot.side == trade.side
                and 0 < delay < window_seconds
            ):
                pairs.append((trade, bot))
                break
    return pairs


def copy_delays(
    trader_activity: Iterable[ActivityRecord],
    bot_activity: Iterable[ActivityRecord],
    window_seconds: int = COPY_DELAY_WINDOW_SECONDS,
) -> List[int]:
    """Seconds between each trader trade and the first matching bot trade."""
    return [
        bot.timestamp - trade.timestamp
        for trade, bot in _copied_trades(trader_activity, bot_activity, window_seconds)
    ]


def average_copy_delay(
    trader_activity: Iterable[ActivityRecord],
    bot_activity: Iterable[ActivityRecord],
) -> Optional[float]:
    delays = copy_delays(trader_activity, bot_activity)
    if not delays:
        return None
    return sum(delays) / len(delays)


@dataclass(frozen=True)
class TradeSlippage:
    """A trader trade next to the bot trade that copied it."""

    trader: ActivityRecord
    bot: ActivityRecord

    @property
    def slippage_pct(self) -> Decimal:
        """(bot - trader) / trader price, in percent. Positive is worse for a BUY."""
        return (self.bot.price - self.trader.price) / self.trader.price * _HUNDRED

    @property
    def delay_seconds(self) -> int:
        return self.bot.timestamp - self.trader.timestamp

    def to_dict(self) -> dict:
        return {
            "title": self.trader.title,
            "outcome": self.trader.outcome,
            "side": self.trader.side,
            "traderPrice": float(self.trader.price),
            "traderSize": float(self.trader.size),
            "botPrice": float(self.bot.price),
            "botSize": float(self.bot.size),
            "slippagePct": round(float(self.slippage_pct), 2),
            "traderTime": self.trader.timestamp,
            "botTime": self.bot.timestamp,
            "delaySeconds": self.delay_seconds,
        }


def trade_slippages(
    trader_activity: Iterable[ActivityRecord],
    bot_activity: Iterable[ActivityRecord],
    window_seconds: int = TRADE_COMPARISON_WINDOW_SECONDS,
) -> List[TradeSlippage]:
    """Per-trade price slippage of the bot's copies. Trades priced at zero are skipped."""
    return [
        TradeSlippage(trader=trade, bot=bot)
        for trade, bot in _copied_trades(trader_activity, bot_activity, window_seconds)
        if trade.price > 0
    ]


def average_trade_slippage(
    trader_activity: Iterable[ActivityRecord],
    bot_activity: Iterable[ActivityRecord],
    window_seconds: int = COPY_DELAY_WINDOW_SECONDS,
) -> Optional[Decimal]:
    """Mean absolute slippage % over copied trades, or None when nothing pairs."""
    slippages = trade_slippages(trader_activity, bot_activity, window_seconds)
    if not slippages:
        return None
    return sum((abs(s.slippage_pct) for s in slippages), Decimal("0")) / len(slippages)
