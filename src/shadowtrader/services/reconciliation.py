"""Reconciliation of stale bot positions.

A position is stale when the bot holds it open but no tracked trader does:
the trader exited and the bot did not follow. Each stale position is
unwound with a full-size SELL through the guarded execution loop, one at a
time. Per-task failures are recorded, never raised.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List, Optional, Protocol, Tuple

import structlog

from shadowtrader.core.errors import CancelledError
from shadowtrader.core.scheduler import Scheduler
from shadowtrader.domain.market import OrderSide
from shadowtrader.domain.order import OrderResult, ReconcileTask
from shadowtrader.domain.position import Position
from shadowtrader.metrics import RECONCILE_PASSES_TOTAL, STALE_POSITIONS
from shadowtrader.services.execution import (
    ExecutionOutcome,
    ExecutionRetryLoop,
    LoopState,
    aborted,
)
from shadowtrader.services.matcher import PositionMatcher

log = structlog.get_logger()

# Pause after every task to stay under the exchange's request-rate limits
INTER_TASK_PAUSE_SECONDS = 0.25


class BalanceSource(Protocol):
    async def get_balance(self) -> Decimal: ...


@dataclass
class BalanceLedger:
    """Wallet balance read once per pass and adjusted locally after fills."""

    starting: Decimal
    available: Decimal

    @classmethod
    def open(cls, balance: Decimal) -> "BalanceLedger":
        return cls(starting=balance, available=balance)

    def apply(self, order: OrderResult) -> None:
        notional = order.filled_notional
        if order.side == OrderSide.SELL:
            self.available += notional
        else:
            self.available -= notional


@dataclass
class ReconcileReport:
    """Per-position outcomes of one pass, in processing order."""

    results: List[Tuple[Position, ExecutionOutcome]] = field(default_factory=list)
    balance: Optional[BalanceLedger] = None

    @property
    def balance_fetched(self) -> bool:
        return self.balance is not None

    def count(self, state: LoopState) -> int:
        return sum(1 for _, outcome in self.results if outcome.state == state)

    @property
    def succeeded(self) -> int:
        return self.count(LoopState.SUCCEEDED)

    @property
    def failed(self) -> int:
        return self.count(LoopState.FAILED)

    @property
    def aborted(self) -> int:
        return self.count(LoopState.ABORTED)

    def to_dict(self) -> dict:
        return {
            "stale": len(self.results),
            "succeeded": self.succeeded,
            "failed": self.failed,
            "aborted": self.aborted,
            "startingBalance": float(self.balance.starting) if self.balance else None,
            "availableBalance": float(self.balance.available) if self.balance else None,
            "results": [
                {"position": position.label, "conditionId": position.condition_id, **outcome.to_dict()}
                for position, outcome in self.results
            ],
        }


class ReconciliationDriver:
    """Finds bot-only open positions and unwinds them sequentially."""

    def __init__(
        self,
        loop: ExecutionRetryLoop,
        balances: BalanceSource,
        scheduler: Optional[Scheduler] = None,
        matcher: Optional[PositionMatcher] = None,
        pause_seconds: float = INTER_TASK_PAUSE_SECONDS,
    ):
        self._loop = loop
        self._balances = balances
        self._scheduler = scheduler or Scheduler()
        self._matcher = matcher or PositionMatcher()
        self._pause_seconds = pause_seconds
        self._log = log.bind(component="reconciliation")

    async def reconcile(
        self,
        trader_positions: Iterable[Position],
        bot_positions: Iterable[Position],
    ) -> ReconcileReport:
        """Close every stale bot position.

        Returns:
            ReconcileReport with one (position, outcome) per stale position.
        """
        stale = self._matcher.stale_positions(trader_positions, bot_positions)
        STALE_POSITIONS.set(len(stale))
        report = ReconcileReport()

        if not stale:
            self._log.info("no_stale_positions")
            RECONCILE_PASSES_TOTAL.inc()
            return report

        self._log.info("stale_positions_found", count=len(stale))
        report.balance = BalanceLedger.open(await self._balances.get_balance())
        self._log.info("balance_snapshot", available=str(report.balance.available))

        for index, position in enumerate(stale):
            if self._scheduler.token.is_cancelled:
                for remaining in stale[index:]:
                    report.results.append(
                        (remaining, aborted(ReconcileTask.from_position(remaining).instruction, "cancelled"))
                    )
                self._log.warning("reconcile_cancelled", remaining=len(stale) - index)
                break

            outcome = await self._run_task(position)
            report.results.append((position, outcome))
            if outcome.succeeded and outcome.order is not None:
                report.balance.apply(outcome.order)

            try:
                await self._scheduler.sleep(self._pause_seconds)
            except CancelledError:
                # Remaining positions are reported on the next iteration
                continue

        RECONCILE_PASSES_TOTAL.inc()
        self._log.info(
            "reconcile_complete",
            stale=len(stale),
            succeeded=report.succeeded,
            failed=report.failed,
            aborted=report.aborted,
        )
        return report

    async def _run_task(self, position: Position) -> ExecutionOutcome:
        try:
            task = ReconcileTask.from_position(position)
            self._log.info(
                "stale_position_closing",
                label=position.label,
                condition_id=position.condition_id,
                size=str(position.size),
                reference_price=str(task.instruction.reference_price),
            )
            outcome = await self._loop.execute(task.instruction)
        except Exception as e:
            self._log.error(
                "stale_position_close_failed",
                label=position.label,
                error=str(e),
                error_type=type(e).__name__,
            )
            return ExecutionOutcome(state=LoopState.FAILED, reason="unexpected error", error=e)

        if not outcome.succeeded:
            self._log.warning(
                "stale_position_not_closed",
                label=position.label,
                state=outcome.state.value,
                reason=outcome.reason,
                error=str(outcome.error) if outcome.error else None,
            )
        return outcome
