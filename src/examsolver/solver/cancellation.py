"""Cooperative stop signal for the solver loop."""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from examsolver.common.errors import StopRequested

T = TypeVar("T")


class StopSignal:
    """Stop request shared by every suspension point of one solver loop.

    The loop never gets preempted mid-computation; it checks the signal when
    it is about to wait (capture, next stream fragment, countdown tick).
    Waits go through ``sleep`` or ``race``, which return as soon as the
    signal is set.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def set(self) -> None:
        """Request the loop to stop."""
        self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()

    def check(self) -> None:
        """Raise StopRequested if a stop was requested."""
        if self._event.is_set():
            raise StopRequested("Stop requested")

    async def sleep(self, seconds: float) -> None:
        """Sleep for ``seconds`` unless a stop arrives first.

        Raises:
            StopRequested: If the signal is set before or during the sleep.
        """
        self.check()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        self.check()

    async def race(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless a stop arrives first.

        The awaitable runs as its own task and is cancelled when the signal
        wins. A stop that is set by the time either side finishes wins over
        the result.

        Raises:
            StopRequested: If the signal is set before or while waiting.
        """
        if self.is_set() and asyncio.iscoroutine(awaitable):
            awaitable.close()
        self.check()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)

        self.check()
        return task.result()
