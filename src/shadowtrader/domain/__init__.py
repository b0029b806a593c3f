"""Domain models - pure data structures with no I/O dependencies."""

from shadowtrader.domain.market import BookLevel, OrderSide, Quote
from shadowtrader.domain.order import (
    FALLBACK_REFERENCE_PRICE,
    CopyInstruction,
    ExitInstruction,
    OrderInstruction,
    OrderResult,
    ReconcileTask,
)
from shadowtrader.domain.position import (
    OPEN_VALUE_THRESHOLD,
    ActivityRecord,
    Position,
)

__all__ = [
    # Market
    "BookLevel",
    "OrderSide",
    "Quote",
    # Positions
    "OPEN_VALUE_THRESHOLD",
    "ActivityRecord",
    "Position",
    # Orders
    "FALLBACK_REFERENCE_PRICE",
    "OrderInstruction",
    "ExitInstruction",
    "CopyInstruction",
    "ReconcileTask",
    "OrderResult",
]
