"""Factories for domain objects and a fake-clock scheduler."""

from decimal import Decimal
from typing import List, Optional

from shadowtrader.core.scheduler import CancellationToken, Scheduler
from shadowtrader.domain.market import BookLevel, OrderSide, Quote
from shadowtrader.domain.order import OrderResult
from shadowtrader.domain.position import ActivityRecord, Position


def make_position(
    title: str = "Market A",
    outcome: str = "Up",
    avg_price: str = "0.40",
    size: str = "100",
    current_value: str = "40",
    cur_price: Optional[str] = None,
    condition_id: Optional[str] = None,
    outcome_index: Optional[int] = 0,
    asset: Optional[str] = None,
    cash_pnl: str = "0",
    realized_pnl: str = "0",
    proxy_wallet: str = "0xtrader",
) -> Position:
    """Build a Position; condition id and asset default to values derived from the title."""
    condition = condition_id if condition_id is not None else f"cond-{title}"
    return Position(
        proxy_wallet=proxy_wallet,
        asset=asset or f"token-{title}-{outcome}",
        condition_id=condition,
        outcome_index=outcome_index,
        outcome=outcome,
        title=title,
        size=Decimal(size),
        avg_price=Decimal(avg_price),
        cur_price=Decimal(cur_price if cur_price is not None else avg_price),
        current_value=Decimal(current_value),
        cash_pnl=Decimal(cash_pnl),
        realized_pnl=Decimal(realized_pnl),
    )


def make_activity(
    side: str = "BUY",
    price: str = "0.50",
    size: str = "20",
    usdc_size: str = "10",
    timestamp: int = 1_700_000_000,
    condition_id: str = "cond-Market A",
    type: str = "TRADE",
    title: str = "Market A",
    outcome: str = "Up",
) -> ActivityRecord:
    return ActivityRecord(
        proxy_wallet="0xtrader",
        timestamp=timestamp,
        type=type,
        side=side,
        condition_id=condition_id,
        asset=f"token-{title}-{outcome}",
        size=Decimal(size),
        usdc_size=Decimal(usdc_size),
        price=Decimal(price),
        outcome=outcome,
        title=title,
        transaction_hash=f"0x{timestamp}",
    )


def make_quote(
    bid: Optional[str] = "0.49",
    ask: Optional[str] = "0.51",
    bid_size: str = "100",
    ask_size: str = "100",
    token_id: str = "token",
) -> Quote:
    bids = (BookLevel(Decimal(bid), Decimal(bid_size)),) if bid is not None else ()
    asks = (BookLevel(Decimal(ask), Decimal(ask_size)),) if ask is not None else ()
    return Quote(token_id=token_id, bids=bids, asks=asks)


def make_order_result(
    side: OrderSide = OrderSide.SELL,
    price: str = "0.50",
    size: str = "10",
    filled: Optional[str] = None,
    token_id: str = "token",
) -> OrderResult:
    return OrderResult(
        order_id="order-1",
        token_id=token_id,
        side=side,
        price=Decimal(price),
        size=Decimal(size),
        status="MATCHED",
        filled_size=Decimal(filled if filled is not None else size),
    )


class FakeScheduler(Scheduler):
    """Scheduler with a fake clock: sleeps return immediately and advance time."""

    def __init__(self, token: Optional[CancellationToken] = None, cancel_after_sleeps: Optional[int] = None):
        super().__init__(token)
        self.clock = 0.0
        self.sleeps: List[float] = []
        self._cancel_after_sleeps = cancel_after_sleeps

    def now(self) -> float:
        return self.clock

    async def sleep(self, seconds: float) -> None:
        self.token.raise_if_cancelled()
        self.sleeps.append(seconds)
        self.clock += seconds
        if self._cancel_after_sleeps is not None and len(self.sleeps) >= self._cancel_after_sleeps:
            self.token.cancel("test cancel")
            self.token.raise_if_cancelled()
