"""Guarded execution retry loop.

State machine per task:

    CHECKING -> EXECUTING | WAITING | ABORTED
    WAITING  -> CHECKING            (after the configured pause)
    EXECUTING -> SUCCEEDED | FAILED

A fresh quote is fetched on every CHECKING step. The order is submitted at
most once per task, limited to the live price the guard approved on the
last check; a submission failure is reported, never resubmitted. Both copy
trades and reconciliation exits go through this loop.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Protocol

import structlog

from shadowtrader.core.config import SlippageConfig
from shadowtrader.core.errors import CancelledError
from shadowtrader.core.scheduler import Scheduler
from shadowtrader.domain.market import Quote
from shadowtrader.domain.order import OrderInstruction, OrderResult
from shadowtrader.metrics import record_execution_outcome
from shadowtrader.services.guard import GuardDecision, SlippageGuard

log = structlog.get_logger()


class QuoteSource(Protocol):
    async def get_quote(self, token_id: str) -> Quote: ...


class OrderSubmitter(Protocol):
    async def submit(self, instruction: OrderInstruction, limit_price: Decimal) -> OrderResult: ...


class LoopState(str, Enum):
    CHECKING = "checking"
    WAITING = "waiting"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (LoopState.SUCCEEDED, LoopState.FAILED, LoopState.ABORTED)


@dataclass
class ExecutionOutcome:
    """Terminal result of one task run through the loop."""

    state: LoopState
    instruction: Optional[OrderInstruction] = None
    retries: int = 0
    waited_seconds: float = 0.0
    reason: Optional[str] = None
    error: Optional[BaseException] = None
    order: Optional[OrderResult] = None
    decisions: List[GuardDecision] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state == LoopState.SUCCEEDED

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "label": self.instruction.label if self.instruction else None,
            "side": self.instruction.side.value if self.instruction else None,
            "quantity": float(self.instruction.quantity) if self.instruction else None,
            "retries": self.retries,
            "waitedSeconds": round(self.waited_seconds, 3),
            "reason": self.reason,
            "error": str(self.error) if self.error else None,
            "orderId": self.order.order_id if self.order else None,
        }


def aborted(instruction: Optional[OrderInstruction], reason: str) -> ExecutionOutcome:
    """Outcome for a task abandoned before (or instead of) checking."""
    return ExecutionOutcome(state=LoopState.ABORTED, instruction=instruction, reason=reason)


class ExecutionRetryLoop:
    """Drives the slippage guard across bounded attempts, then submits once."""

    def __init__(
        self,
        config: SlippageConfig,
        quotes: QuoteSource,
        submitter: OrderSubmitter,
        scheduler: Optional[Scheduler] = None,
        guard: Optional[SlippageGuard] = None,
    ):
        self.config = config
        self._quotes = quotes
        self._submitter = submitter
        self._scheduler = scheduler or Scheduler()
        self._guard = guard or SlippageGuard(config)
        self._log = log.bind(component="execution_loop")

    async def execute(self, instruction: OrderInstruction) -> ExecutionOutcome:
        """Run one instruction to a terminal state.

        Never raises for guard aborts, quote failures or submission
        failures; they are returned as ABORTED / FAILED outcomes.
        """
        outcome = ExecutionOutcome(state=LoopState.CHECKING, instruction=instruction)
        task_log = self._log.bind(
            label=instruction.label,
            token_id=instruction.token_id,
            side=instruction.side.value,
            caller=instruction.caller,
        )

        while not outcome.state.is_terminal:
            if outcome.state == LoopState.CHECKING:
                await self._check(instruction, outcome, task_log)
            elif outcome.state == LoopState.WAITING:
                await self._wait(outcome, task_log)
            elif outcome.state == LoopState.EXECUTING:
                await self._submit(instruction, outcome, task_log)

        record_execution_outcome(outcome.state.value, instruction.caller, outcome.waited_seconds)
        return outcome

    async def _check(self, instruction, outcome: ExecutionOutcome, task_log) -> None:
        if self._scheduler.token.is_cancelled:
            outcome.state = LoopState.ABORTED
            outcome.reason = "cancelled"
            return

        try:
            quote = await self._quotes.get_quote(instruction.token_id)
        except Exception as e:
            task_log.error("quote_fetch_failed", error=str(e), error_type=type(e).__name__)
            outcome.state = LoopState.FAILED
            outcome.reason = "quote fetch failed"
            outcome.error = e
            return

        decision = self._guard.evaluate(
            instruction.reference_price,
            instruction.side,
            quote,
            attempt=outcome.retries,
        )
        outcome.decisions.append(decision)

        if decision.should_proceed:
            outcome.state = LoopState.EXECUTING
        elif decision.should_retry:
            outcome.retries += 1
            outcome.state = LoopState.WAITING
            task_log.info(
                "guard_retry",
                retry=outcome.retries,
                max_retries=self.config.max_retries,
                reason=decision.reason,
                wait_ms=self.config.wait_ms,
            )
        else:
            outcome.state = LoopState.ABORTED
            outcome.reason = decision.reason
            task_log.warning("guard_aborted", reason=decision.reason, retries=outcome.retries)

    async def _wait(self, outcome: ExecutionOutcome, task_log) -> None:
        started = self._scheduler.now()
        try:
            await self._scheduler.sleep(self.config.wait_seconds)
        except CancelledError:
            outcome.state = LoopState.ABORTED
            outcome.reason = "cancelled"
            task_log.info("guard_wait_cancelled", retries=outcome.retries)
            return
        finally:
            outcome.waited_seconds += self._scheduler.now() - started
        outcome.state = LoopState.CHECKING

    async def _submit(self, instruction: OrderInstruction, outcome: ExecutionOutcome, task_log) -> None:
        limit_price = outcome.decisions[-1].live_price
        try:
            order = await self._submitter.submit(instruction, limit_price)
        except Exception as e:
            task_log.error(
                "order_submission_failed",
                quantity=str(instruction.quantity),
                error=str(e),
                error_type=type(e).__name__,
            )
            outcome.state = LoopState.FAILED
            outcome.reason = "submission failed"
            outcome.error = e
            return

        outcome.state = LoopState.SUCCEEDED
        outcome.order = order
        task_log.info(
            "order_submitted",
            order_id=order.order_id,
            status=order.status,
            price=str(order.price),
            size=str(order.size),
            retries=outcome.retries,
        )
