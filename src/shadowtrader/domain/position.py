"""Position and activity snapshots from the Polymarket data API.

Snapshots are immutable and re-fetched every pass. Monetary fields are
parsed into Decimal so cent rounding and slippage percentages are exact.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

# A position worth this much or less is treated as closed (sold or resolved worthless)
OPEN_VALUE_THRESHOLD = Decimal("0.01")


def to_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    """Parse an API number (float, int, str or None) into a Decimal."""
    if value is None or value == "":
        return default
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default
    return default if not parsed.is_finite() else parsed


def _to_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class Position:
    """A held quantity of one outcome token in one market.

    Attributes:
        proxy_wallet: Wallet holding the position.
        asset: Outcome token id (what orders are placed against).
        condition_id: Market condition id.
        outcome_index: Index of the outcome within the market.
        outcome: Outcome label ("Yes", "Up", ...).
        title: Market title, display only.
        size: Shares held.
        avg_price: Average entry price.
        cur_price: Current mark price.
        current_value: Mark value in USD, clamped at zero.
        cash_pnl: Unrealized PnL on the remaining size.
        realized_pnl: PnL already realized from sells/redemptions.
    """

    proxy_wallet: str
    asset: str
    condition_id: str
    outcome_index: Optional[int]
    outcome: str
    title: str
    size: Decimal
    avg_price: Decimal
    cur_price: Decimal
    current_value: Decimal
    cash_pnl: Decimal = Decimal("0")
    realized_pnl: Decimal = Decimal("0")
    slug: str = ""
    event_slug: str = ""
    icon: str = ""

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "Position":
        """Build a Position from a data API ``/positions`` entry."""
        current_value = to_decimal(data.get("currentValue"))
        return cls(
            proxy_wallet=str(data.get("proxyWallet") or "").lower(),
            asset=str(data.get("asset") or ""),
            condition_id=str(data.get("conditionId") or ""),
            outcome_index=_to_int(data.get("outcomeIndex")),
            outcome=str(data.get("outcome") or ""),
            title=str(data.get("title") or ""),
            size=to_decimal(data.get("size")),
            avg_price=to_decimal(data.get("avgPrice")),
            cur_price=to_decimal(data.get("curPrice")),
            current_value=max(current_value, Decimal("0")),
            cash_pnl=to_decimal(data.get("cashPnl")),
            realized_pnl=to_decimal(data.get("realizedPnl")),
            slug=str(data.get("slug") or ""),
            event_slug=str(data.get("eventSlug") or ""),
            icon=str(data.get("icon") or ""),
        )

    @property
    def is_open(self) -> bool:
        return self.current_value > OPEN_VALUE_THRESHOLD

    @property
    def pnl(self) -> Decimal:
        """Realized plus unrealized PnL."""
        return self.cash_pnl + self.realized_pnl

    @property
    def display_key(self) -> str:
        return f"{self.title}|{self.outcome}"

    @property
    def market_key(self) -> str:
        """Canonical market identity: condition id plus outcome.

        Titles are reused across market instances, so title|outcome is only
        used when the feed omits the condition id.
        """
        if not self.condition_id:
            return self.display_key
        if self.outcome_index is not None:
            return f"{self.condition_id}|{self.outcome_index}"
        return f"{self.condition_id}|{self.outcome}"

    @property
    def label(self) -> str:
        """Human-readable label for logs."""
        name = self.title or self.asset or self.condition_id
        return f"{name} [{self.outcome}]" if self.outcome else name

    def to_dict(self) -> dict:
        return {
            "proxyWallet": self.proxy_wallet,
            "asset": self.asset,
            "conditionId": self.condition_id,
            "outcomeIndex": self.outcome_index,
            "outcome": self.outcome,
            "title": self.title,
            "slug": self.slug,
            "eventSlug": self.event_slug,
            "icon": self.icon,
            "size": float(self.size),
            "avgPrice": float(self.avg_price),
            "curPrice": float(self.cur_price),
            "currentValue": float(self.current_value),
            "cashPnl": float(self.cash_pnl),
            "realizedPnl": float(self.realized_pnl),
        }


@dataclass(frozen=True)
class ActivityRecord:
    """One entry of the data API ``/activity`` feed."""

    proxy_wallet: str
    timestamp: int
    type: str
    side: str
    condition_id: str
    asset: str
    size: Decimal
    usdc_size: Decimal
    price: Decimal
    outcome: str = ""
    outcome_index: Optional[int] = None
    title: str = ""
    slug: str = ""
    transaction_hash: str = ""

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "ActivityRecord":
        return cls(
            proxy_wallet=str(data.get("proxyWallet") or "").lower(),
            timestamp=_to_int(data.get("timestamp")) or 0,
            type=str(data.get("type") or "").upper(),
            side=str(data.get("side") or "").upper(),
            condition_id=str(data.get("conditionId") or ""),
            asset=str(data.get("asset") or ""),
            size=to_decimal(data.get("size")),
            usdc_size=to_decimal(data.get("usdcSize")),
            price=to_decimal(data.get("price")),
            outcome=str(data.get("outcome") or ""),
            outcome_index=_to_int(data.get("outcomeIndex")),
            title=str(data.get("title") or ""),
            slug=str(data.get("slug") or ""),
            transaction_hash=str(data.get("transactionHash") or ""),
        )

    @property
    def is_trade(self) -> bool:
        return self.type == "TRADE"

    @property
    def label(self) -> str:
        name = self.title or self.asset or self.condition_id
        return f"{name} [{self.outcome}]" if self.outcome else name

    def to_dict(self) -> dict:
        return {
            "proxyWallet": self.proxy_wallet,
            "timestamp": self.timestamp,
            "type": self.type,
            "side": self.side,
            "conditionId": self.condition_id,
            "asset": self.asset,
            "title": self.title,
            "outcome": self.outcome,
            "outcomeIndex": self.outcome_index,
            "size": float(self.size),
            "usdcSize": float(self.usdc_size),
            "price": float(self.price),
            "transactionHash": self.transaction_hash,
        }
