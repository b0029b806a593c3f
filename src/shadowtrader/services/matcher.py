"""Position matching between a tracked trader and the bot wallet.

Pairs open positions by market identity only; price and size differences
never prevent a match. Closed positions never take part in drift analysis.
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Dict, Iterable, List

from shadowtrader.domain.position import Position

KeyFn = Callable[[Position], str]

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


def price_cents(price: Decimal) -> int:
    """Price in whole cents, rounded half-up."""
    return int((price * _HUNDRED).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def open_positions(positions: Iterable[Position]) -> List[Position]:
    return [p for p in positions if p.is_open]


def canonical_key(position: Position) -> str:
    return position.market_key


@dataclass(frozen=True)
class MatchedPair:
    """Trader and bot positions sharing a market key."""

    key: str
    trader: Position
    bot: Position

    @property
    def price_spread_cents(self) -> int:
        """Bot entry minus trader entry, in cents. Positive = bot paid more."""
        return price_cents(self.bot.avg_price) - price_cents(self.trader.avg_price)

    @property
    def slippage_pct(self) -> Decimal:
        if self.trader.avg_price == 0:
            return _ZERO
        return (self.bot.avg_price - self.trader.avg_price) / self.trader.avg_price * _HUNDRED

    @property
    def slippage_usd(self) -> Decimal:
        return (self.bot.avg_price - self.trader.avg_price) * self.bot.size

    @property
    def size_delta(self) -> Decimal:
        return self.bot.size - self.trader.size

    @property
    def size_delta_pct(self) -> Decimal:
        if self.trader.size <= 0:
            return _ZERO
        return self.size_delta / self.trader.size * _HUNDRED

    @property
    def pnl_delta(self) -> Decimal:
        return self.bot.pnl - self.trader.pnl

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "title": self.trader.title,
            "outcome": self.trader.outcome,
            "traderEntryCents": price_cents(self.trader.avg_price),
            "botEntryCents": price_cents(self.bot.avg_price),
            "priceSpreadCents": self.price_spread_cents,
            "slippagePct": round(float(self.slippage_pct), 2),
            "sizeDelta": float(self.size_delta),
            "sizeDeltaPct": round(float(self.size_delta_pct), 1),
            "pnlDelta": float(self.pnl_delta),
        }


@dataclass(frozen=True)
class MatchResult:
    """Output of one matching pass over two open-position snapshots."""

    matched: List[MatchedPair] = field(default_factory=list)
    trader_only: List[Position] = field(default_factory=list)
    bot_only: List[Position] = field(default_factory=list)
    trader_open_count: int = 0
    bot_open_count: int = 0

    @property
    def avg_slippage_pct(self) -> Decimal:
        """Unweighted mean of per-pair slippage; not value-weighted."""
        if not self.matched:
            return _ZERO
        return sum((p.slippage_pct for p in self.matched), _ZERO) / len(self.matched)

    @property
    def total_slippage_usd(self) -> Decimal:
        return sum((p.slippage_usd for p in self.matched), _ZERO)

    @property
    def matched_trader_count(self) -> int:
        return self.trader_open_count - len(self.trader_only)

    @property
    def match_rate(self) -> int:
        """Percent of trader open positions the bot also holds."""
        if self.trader_open_count == 0:
            return 0
        ratio = Decimal(self.matched_trader_count) / Decimal(self.trader_open_count) * _HUNDRED
        return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    def summary(self) -> dict:
        return {
            "matched": len(self.matched),
            "traderOnly": len(self.trader_only),
            "botOnly": len(self.bot_only),
            "traderOpen": self.trader_open_count,
            "botOpen": self.bot_open_count,
            "matchRate": self.match_rate,
            "avgSlippagePct": round(float(self.avg_slippage_pct), 2),
            "totalSlippageUsd": round(float(self.total_slippage_usd), 2),
        }


class PositionMatcher:
    """Pairs trader and bot open positions by market key.

    Usage:
        result = PositionMatcher().match(trader_positions, bot_positions)
        stale = result.bot_only
    """

    def __init__(self, key: KeyFn = canonical_key):
        self._key = key

    def match(
        self,
        trader_positions: Iterable[Position],
        bot_positions: Iterable[Position],
    ) -> MatchResult:
        trader_open = open_positions(trader_positions)
        bot_open = open_positions(bot_positions)

        trader_by_key: Dict[str, Position] = {self._key(p): p for p in trader_open}
        bot_by_key: Dict[str, Position] = {self._key(p): p for p in bot_open}

        matched = [
            MatchedPair(key=key, trader=trader, bot=bot_by_key[key])
            for key, trader in trader_by_key.items()
            if key in bot_by_key
        ]
        trader_only = [p for p in trader_open if self._key(p) not in bot_by_key]
        bot_only = [p for p in bot_open if self._key(p) not in trader_by_key]

        return MatchResult(
            matched=matched,
            trader_only=trader_only,
            bot_only=bot_only,
            trader_open_count=len(trader_open),
            bot_open_count=len(bot_open),
        )

    def stale_positions(
        self,
        trader_positions: Iterable[Position],
        bot_positions: Iterable[Position],
    ) -> List[Position]:
        """Bot open positions with no open trader counterpart, in input order."""
        return self.match(trader_positions, bot_positions).bot_only


def match_positions(
    trader_positions: Iterable[Position],
    bot_positions: Iterable[Position],
) -> MatchResult:
    """Convenience function using the canonical market key."""
    return PositionMatcher().match(trader_positions, bot_positions)
