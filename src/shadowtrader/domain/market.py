"""Order book quote types."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional


class OrderSide(str, Enum):
    """Side of an order (buy or sell)."""

    BUY = "BUY"
    SELL = "SELL"


@dataclass(frozen=True)
class BookLevel:
    """A single price level in an order book.

    Attributes:
        price: Price in dollars (0.0 to 1.0 for Polymarket).
        size: Number of shares available at this price.
    """

    price: Decimal
    size: Decimal

    @property
    def notional_usd(self) -> Decimal:
        return self.price * self.size


@dataclass(frozen=True)
class Quote:
    """Top of book for one outcome token, fetched fresh before each attempt.

    Bids are sorted highest-first, asks lowest-first.
    """

    token_id: str
    bids: tuple[BookLevel, ...] = field(default_factory=tuple)
    asks: tuple[BookLevel, ...] = field(default_factory=tuple)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def best_bid(self) -> Optional[BookLevel]:
        return self.bids[0] if self.bids else None

    @property
    def best_ask(self) -> Optional[BookLevel]:
        return self.asks[0] if self.asks else None

    def best_level(self, side: OrderSide) -> Optional[BookLevel]:
        """Level an order on ``side`` would execute against.

        A BUY lifts the best ask, a SELL hits the best bid.
        """
        return self.best_ask if side == OrderSide.BUY else self.best_bid

    def live_price(self, side: OrderSide) -> Optional[Decimal]:
        level = self.best_level(side)
        return level.price if level else None

    def depth_usd(self, side: OrderSide) -> Decimal:
        """USD notional available at the best level for ``side``."""
        level = self.best_level(side)
        return level.notional_usd if level else Decimal("0")

    @property
    def midpoint(self) -> Optional[Decimal]:
        if self.best_bid is not None and self.best_ask is not None:
            return (self.best_bid.price + self.best_ask.price) / 2
        return None
