"""
Scheduling primitives with cooperative cancellation.

Every suspension point in the execution path (guard retry waits, the pause
between reconciliation tasks, periodic polling) goes through a Scheduler so
a pass can be halted cleanly between steps.
"""

import asyncio
import inspect
import time
from typing import Any, Awaitable, Callable, Optional, Union

import structlog

from shadowtrader.core.errors import CancelledError

log = structlog.get_logger()


class CancellationToken:
    """One-shot cancellation signal backed by an asyncio.Event."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancelledError(self._reason or "cancelled")

    async def wait(self) -> None:
        await self._event.wait()


class Scheduler:
    """Runs work after a duration or periodically, honouring a token."""

    def __init__(self, token: Optional[CancellationToken] = None) -> None:
        self.token = token or CancellationToken()

    def now(self) -> float:
        """Monotonic clock used to measure time spent waiting."""
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        """Suspend for ``seconds`` unless the token is cancelled first.

        Raises:
            CancelledError: If the token is (or becomes) cancelled.
        """
        self.token.raise_if_cancelled()
        if seconds <= 0:
            return
        try:
            await asyncio.wait_for(self.token.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        self.token.raise_if_cancelled()

    async def run_after(
        self,
        seconds: float,
        fn: Callable[[], Union[Awaitable[Any], Any]],
    ) -> Any:
        """Wait ``seconds`` then call ``fn`` (sync or async)."""
        await self.sleep(seconds)
        result = fn()
        if inspect.isawaitable(result):
            result = await result
        return result

    async def run_periodically(
        self,
        seconds: float,
        fn: Callable[[], Union[Awaitable[Any], Any]],
        run_immediately: bool = True,
    ) -> int:
        """Call ``fn`` every ``seconds`` until the token is cancelled.

        Exceptions raised by ``fn`` are logged and do not stop the schedule.

        Returns:
            Number of completed runs.
        """
        runs = 0
        if not run_immediately:
            try:
                await self.sleep(seconds)
            except CancelledError:
                return runs

        while not self.token.is_cancelled:
            try:
                result = fn()
                if inspect.isawaitable(result):
                    await result
            except CancelledError:
                break
            except Exception as e:
                log.error("scheduled_run_failed", error=str(e), error_type=type(e).__name__)
            runs += 1
            try:
                await self.sleep(seconds)
            except CancelledError:
                break

        log.info("schedule_stopped", runs=runs, reason=self.token.reason)
        return runs
