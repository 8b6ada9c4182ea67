"""Countdown between rounds."""

from __future__ import annotations

from typing import Awaitable, Callable

from examsolver.solver.cancellation import StopSignal
from examsolver.solver.display import DisplayPresenter

TICK_MS = 1000

Sleeper = Callable[[float], Awaitable[None]]


def countdown_status(seconds: int, prefix: str | None = None) -> str:
    """Status line for one countdown tick."""
    if prefix and prefix.strip():
        return f"{prefix} (next capture in {seconds}s)"
    return f"Next capture in {seconds}s"


class RoundScheduler:
    """Shows a per-second countdown on the glasses while waiting."""

    def __init__(
        self,
        presenter: DisplayPresenter,
        stop: StopSignal,
        sleep: Sleeper | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            presenter: Where the countdown status goes.
            stop: Checked before every tick.
            sleep: Awaitable sleep, defaults to ``stop.sleep`` so a stop ends
                the wait early.
        """
        self.presenter = presenter
        self.stop = stop
        self._sleep = sleep or stop.sleep

    async def countdown(self, total_seconds: float, prefix: str | None = None) -> None:
        """Wait ``total_seconds``, updating the status line once per second.

        Raises:
            StopRequested: If a stop is requested before a tick.
        """
        remaining = int(round(total_seconds * 1000))
        while remaining > 0:
            self.stop.check()
            secs = max(1, (remaining + TICK_MS - 1) // TICK_MS)
            await self.presenter.update_status(countdown_status(secs, prefix))
            step = min(TICK_MS, remaining)
            await self._sleep(step / 1000)
            remaining -= step
