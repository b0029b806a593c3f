"""Slippage and depth guard.

Decides, for one order attempt, whether the live book still supports
executing near the reference price with enough liquidity at the top level.
Pure: the caller fetches the quote.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

import structlog

from shadowtrader.core.config import SlippageAction, SlippageConfig
from shadowtrader.domain.market import OrderSide, Quote
from shadowtrader.metrics import record_guard_decision

log = structlog.get_logger()

_HUNDRED = Decimal("100")

MAX_RETRIES_REASON = "max retries exhausted"


class Decision(str, Enum):
    PROCEED = "proceed"
    RETRY_AFTER_WAIT = "retry_after_wait"
    ABORT = "abort"


@dataclass(frozen=True)
class GuardDecision:
    """Outcome of one guard evaluation."""

    decision: Decision
    reason: Optional[str] = None
    live_price: Optional[Decimal] = None
    drift_pct: Optional[Decimal] = None
    adverse_drift_pct: Optional[Decimal] = None
    depth_usd: Decimal = Decimal("0")

    @property
    def should_proceed(self) -> bool:
        return self.decision == Decision.PROCEED

    @property
    def should_retry(self) -> bool:
        return self.decision == Decision.RETRY_AFTER_WAIT

    @property
    def is_abort(self) -> bool:
        return self.decision == Decision.ABORT


def adverse_drift(side: OrderSide, drift_pct: Decimal) -> Decimal:
    """Signed drift in the direction that hurts ``side``.

    A BUY is hurt by a rising price, a SELL by a falling one.
    """
    return drift_pct if side == OrderSide.BUY else -drift_pct


class SlippageGuard:
    """Validates price tolerance and top-of-book depth before an order."""

    def __init__(self, config: SlippageConfig):
        self.config = config
        self._log = log.bind(component="slippage_guard")

    def evaluate(
        self,
        reference_price: Decimal,
        side: OrderSide,
        quote: Quote,
        attempt: int = 0,
    ) -> GuardDecision:
        """Evaluate one attempt.

        Args:
            reference_price: Trader's execution price, or the position's
                current/average price for a reconciliation exit.
            side: BUY or SELL.
            quote: Freshly fetched top of book.
            attempt: Number of retries already spent on this task.

        Returns:
            GuardDecision: PROCEED, RETRY_AFTER_WAIT or ABORT(reason).
        """
        if reference_price <= 0:
            decision = GuardDecision(
                decision=Decision.ABORT,
                reason=f"invalid reference price {reference_price}",
            )
            record_guard_decision(decision.decision.value, side.value)
            return decision

        live_price = quote.live_price(side)
        depth = quote.depth_usd(side)
        violations = []
        drift: Optional[Decimal] = None
        adverse: Optional[Decimal] = None

        if live_price is None:
            violations.append(f"no {'asks' if side == OrderSide.BUY else 'bids'} on book")
        else:
            drift = (live_price - reference_price) / reference_price * _HUNDRED
            adverse = adverse_drift(side, drift)
            if adverse > self.config.max_slippage_pct:
                violations.append(
                    f"adverse drift {adverse:.2f}% exceeds {self.config.max_slippage_pct}%"
                )

        if depth < self.config.min_book_size_usd:
            violations.append(
                f"book depth ${depth:.2f} below ${self.config.min_book_size_usd}"
            )

        if not violations:
            decision = GuardDecision(
                decision=Decision.PROCEED,
                live_price=live_price,
                drift_pct=drift,
                adverse_drift_pct=adverse,
                depth_usd=depth,
            )
        else:
            reason = "; ".join(violations)
            if self.config.action == SlippageAction.SKIP:
                outcome, why = Decision.ABORT, reason
            elif attempt >= self.config.max_retries:
                outcome, why = Decision.ABORT, MAX_RETRIES_REASON
            else:
                outcome, why = Decision.RETRY_AFTER_WAIT, reason

            decision = GuardDecision(
                decision=outcome,
                reason=why,
                live_price=live_price,
                drift_pct=drift,
                adverse_drift_pct=adverse,
                depth_usd=depth,
            )

        self._log.debug(
            "guard_evaluated",
            token_id=quote.token_id,
            side=side.value,
            reference_price=str(reference_price),
            live_price=str(live_price) if live_price is not None else None,
            adverse_drift_pct=str(adverse) if adverse is not None else None,
            depth_usd=str(depth),
            attempt=attempt,
            decision=decision.decision.value,
            reason=decision.reason,
        )
        record_guard_decision(
            decision.decision.value,
            side.value,
            float(adverse) if adverse is not None else None,
        )
        return decision
