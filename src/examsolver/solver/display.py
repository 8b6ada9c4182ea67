"""Glasses display composition: last valid answer plus a status line."""

from __future__ import annotations

from dataclasses import dataclass

from examsolver.common.logging import get_logger
from examsolver.devices.glasses import DisplayOptions, GlassesClient


@dataclass(frozen=True)
class DisplayState:
    """What the glasses are currently showing."""

    persistent_answer: str = ""
    transient_status: str = ""


def compose(answer: str, status: str) -> str:
    """Compose the screen text: answer on top, status line below."""
    answer = answer.rstrip()
    status = status.strip()
    if not answer and not status:
        return ""
    if not answer:
        return status
    if not status:
        return answer
    return f"{answer}\n{status}"


class DisplayPresenter:
    """Keeps the last valid answer on screen while status lines come and go."""

    def __init__(self, glasses: GlassesClient) -> None:
        self.glasses = glasses
        self.logger = get_logger("solver.display")
        self._answer = ""
        self._status = ""

    @property
    def persistent_answer(self) -> str:
        return self._answer

    @property
    def state(self) -> DisplayState:
        return DisplayState(persistent_answer=self._answer, transient_status=self._status)

    async def update_status(self, status: str) -> None:
        """Show ``status`` beneath the persistent answer."""
        self._status = status
        text = compose(self._answer, status)
        if text.strip():
            await self._send(text, force=False)

    async def update_answer(self, text: str) -> None:
        """Replace the persistent answer and refresh the device unconditionally."""
        self._answer = text
        self._status = ""
        await self._send(text, force=True)

    async def show_partial(self, text: str) -> None:
        """Replace the persistent answer with a streamed answer-so-far."""
        self._answer = text
        self._status = ""
        await self._send(compose(text, ""), force=False)

    async def _send(self, text: str, force: bool) -> None:
        ok = await self.glasses.display(text, DisplayOptions(force=force))
        if not ok:
            self.logger.warning("display_failed", force=force, length=len(text))
