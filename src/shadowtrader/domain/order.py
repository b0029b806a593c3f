"""Order instructions and submission results.

Reconciliation exits and copied trades are distinct instruction types so
neither has to carry the other's fields.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from shadowtrader.domain.market import OrderSide
from shadowtrader.domain.position import ActivityRecord, Position

# Neutral midpoint used only when a stale position carries no price signal
FALLBACK_REFERENCE_PRICE = Decimal("0.5")


@dataclass(frozen=True)
class OrderInstruction:
    """What to submit, and the price the guard measures drift against."""

    token_id: str
    side: OrderSide
    quantity: Decimal
    reference_price: Decimal
    label: str
    caller: str = "manual"

    @property
    def notional_usd(self) -> Decimal:
        return self.quantity * self.reference_price


@dataclass(frozen=True)
class ExitInstruction(OrderInstruction):
    """Full exit of a bot position the trader no longer holds."""

    condition_id: str = ""
    caller: str = "reconcile"

    @classmethod
    def for_position(cls, position: Position) -> "ExitInstruction":
        if position.cur_price > 0:
            reference = position.cur_price
        elif position.avg_price > 0:
            reference = position.avg_price
        else:
            reference = FALLBACK_REFERENCE_PRICE

        return cls(
            token_id=position.asset,
            side=OrderSide.SELL,
            quantity=position.size,
            reference_price=reference,
            label=position.label,
            condition_id=position.condition_id,
        )


@dataclass(frozen=True)
class CopyInstruction(OrderInstruction):
    """Mirror of one trader trade."""

    source_transaction: str = ""
    source_timestamp: int = 0
    caller: str = "copy"

    @classmethod
    def for_activity(cls, activity: ActivityRecord, quantity: Decimal) -> "CopyInstruction":
        return cls(
            token_id=activity.asset,
            side=OrderSide(activity.side),
            quantity=quantity,
            reference_price=activity.price,
            label=activity.label,
            source_transaction=activity.transaction_hash,
            source_timestamp=activity.timestamp,
        )


@dataclass(frozen=True)
class ReconcileTask:
    """A stale position and the exit synthesized for it. Consumed once."""

    position: Position
    instruction: ExitInstruction

    @classmethod
    def from_position(cls, position: Position) -> "ReconcileTask":
        return cls(position=position, instruction=ExitInstruction.for_position(position))


@dataclass(frozen=True)
class OrderResult:
    """Result returned by the order-submission collaborator."""

    order_id: str
    token_id: str
    side: OrderSide
    price: Decimal
    size: Decimal
    status: str
    filled_size: Decimal = Decimal("0")
    raw: Optional[dict[str, Any]] = None
    submitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def filled_notional(self) -> Decimal:
        return self.filled_size * self.price
