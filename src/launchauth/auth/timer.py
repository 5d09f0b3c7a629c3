"""Repeating asyncio timer with a fixed wall-clock cadence."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class Timer(Protocol):
    """What the coordinator needs from a repeating timer."""

    period: float

    def start(self) -> None: ...

    def cancel(self) -> None: ...

    @property
    def active(self) -> bool: ...


TimerFactory = Callable[[float, Callable[[], None]], Timer]


class IntervalTimer:
    """Call *callback* every *period* seconds on the running event loop.

    Tick deadlines are computed from the previous deadline, not from the
    end of the callback, so the cadence does not drift. The callback runs
    synchronously inside the timer task and must not block; schedule
    coroutines from it instead of awaiting them.

    Changing :attr:`period` takes effect from the next tick.

    Args:
        period: Seconds between ticks. Must be positive.
        callback: Zero-argument function called on each tick.
    """

    def __init__(self, period: float, callback: Callable[[], None]) -> None:
        if period <= 0:
            raise ValueError(f"Timer period must be positive, got {period}")
        self.period = period
        self._callback = callback
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start ticking. Must be called from within a running event loop."""
        if self.active:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    def cancel(self) -> None:
        """Stop ticking. Safe to call repeatedly."""
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time()
        while True:
            deadline += self.period
            await asyncio.sleep(max(0.0, deadline - loop.time()))
            try:
                self._callback()
            except Exception:
                logger.exception("Timer callback failed")
