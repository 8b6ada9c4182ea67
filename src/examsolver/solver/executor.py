"""Round executor - the exam solver auto-capture loop.

Each round: capture a photo, send it with the conversation so far to the chat
service, classify the streamed answer, then commit the round to history
(valid) or roll it back (rejected or failed), update the glasses and wait for
the next capture.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Callable

from examsolver.common.errors import StopRequested
from examsolver.common.logging import get_logger
from examsolver.config import TimingConfig
from examsolver.devices.glasses import CaptureOptions, CapturedImage, GlassesClient
from examsolver.llm.client import ChatClient
from examsolver.prompts import EXAM_PROMPT
from examsolver.solver.cancellation import StopSignal
from examsolver.solver.classifier import RoundOutcome, StreamClassifier
from examsolver.solver.display import DisplayPresenter
from examsolver.solver.history import ConversationHistory, Message
from examsolver.solver.scheduler import RoundScheduler

STATUS_CAPTURING = "Capturing..."
STATUS_CAPTURE_FAILED = "Capture failed"
STATUS_CALLING_AI = "Calling AI..."
STATUS_AI_FAILED = "AI call failed"


class RoundState(Enum):
    """Executor state."""

    IDLE = "idle"
    CAPTURING = "capturing"
    STREAMING = "streaming"
    COMMITTING = "committing"
    ROLLING_BACK = "rolling_back"
    WAITING = "waiting"
    STOPPED = "stopped"


class RoundExecutor:
    """Runs capture/answer rounds until stopped.

    Rounds run strictly one after another; the history, the persistent answer
    and the stream throttle are only touched from this loop.

    Example:
        executor = RoundExecutor(glasses, chat, history, presenter, scheduler, stop)
        task = asyncio.create_task(executor.run())
        ...
        executor.stop_loop()
        await task
    """

    def __init__(
        self,
        glasses: GlassesClient,
        chat: ChatClient,
        history: ConversationHistory,
        presenter: DisplayPresenter,
        scheduler: RoundScheduler,
        stop: StopSignal,
        model: str | None = None,
        timing: TimingConfig | None = None,
        capture_options: CaptureOptions | None = None,
        prompt: str = EXAM_PROMPT,
        clock: Callable[[], float] = time.monotonic,
        on_captured_image: Callable[[CapturedImage], None] | None = None,
    ) -> None:
        self.glasses = glasses
        self.chat = chat
        self.history = history
        self.presenter = presenter
        self.scheduler = scheduler
        self.stop = stop
        self.model = model
        self.timing = timing or TimingConfig()
        self.capture_options = capture_options or CaptureOptions()
        self.prompt = prompt
        self.on_captured_image = on_captured_image
        self._clock = clock
        self.logger = get_logger("solver.executor")

        self._state = RoundState.IDLE
        self._rounds_completed = 0
        self._last_outcome: RoundOutcome | None = None

    @property
    def state(self) -> RoundState:
        return self._state

    @property
    def rounds_completed(self) -> int:
        """Rounds committed to history since start."""
        return self._rounds_completed

    @property
    def last_outcome(self) -> RoundOutcome | None:
        return self._last_outcome

    def stop_loop(self) -> None:
        """Ask the loop to stop at its next suspension point."""
        self.stop.set()

    async def run(self) -> None:
        """Run the loop until stopped. Per-round failures never end it."""
        self.logger.info("exam_solver_started", model=self.model)

        try:
            self._state = RoundState.WAITING
            await self.scheduler.countdown(self.timing.initial_delay)

            while True:
                self.stop.check()
                outcome = await self.run_round()
                await self._wait_after(outcome)

        except StopRequested:
            pass
        finally:
            self._state = RoundState.STOPPED
            self.logger.info(
                "exam_solver_stopped",
                rounds_completed=self._rounds_completed,
                history_messages=len(self.history),
            )

    async def run_round(self) -> RoundOutcome | None:
        """Run one round without the trailing wait.

        Returns:
            The round outcome, or None if the photo could not be taken.

        Raises:
            StopRequested: If a stop was observed; the round is rolled back.
        """
        self._state = RoundState.CAPTURING
        self.logger.info("capturing")
        await self.presenter.update_status(STATUS_CAPTURING)

        try:
            image = await self.stop.race(self.glasses.capture(self.capture_options))
        except StopRequested:
            raise
        except Exception as e:
            # Any failure to produce a photo only costs this round
            self.logger.warning(
                "capture_failed",
                error=str(e) or type(e).__name__,
                error_type=type(e).__name__,
            )
            await self.presenter.update_status(STATUS_CAPTURE_FAILED)
            self._last_outcome = None
            return None

        self.logger.info("captured", size=len(image.jpeg_bytes))
        if self.on_captured_image is not None:
            self.on_captured_image(image)

        await self.presenter.update_status(STATUS_CALLING_AI)
        outcome = await self._ask(image)
        self._last_outcome = outcome

        if outcome.is_valid:
            self.logger.info("ai_answered", length=len(outcome.display_text))
            await self.presenter.update_answer(outcome.display_text)
        elif outcome.is_error:
            self.logger.warning("ai_call_failed", error=outcome.display_text)
            await self.presenter.update_status(STATUS_AI_FAILED)
        else:
            self.logger.info("ai_rejected", reason=outcome.display_text)
            await self.presenter.update_status(outcome.display_text)

        return outcome

    async def _ask(self, image: CapturedImage) -> RoundOutcome:
        """Stream the answer for ``image`` and commit or roll back the round."""
        self._state = RoundState.STREAMING

        snapshot = self.history.snapshot()
        self.history.begin_round(Message.user(self.prompt, image.jpeg_bytes))
        self.logger.debug("sending_request", model=self.model, history_messages=len(self.history))

        classifier = StreamClassifier(
            min_interval=self.timing.stream_min_interval,
            clock=self._clock,
        )

        try:
            result = await classifier.consume(
                self.chat.stream_text(self.history.to_payload(), self.model),
                on_partial=self.presenter.show_partial,
                stop=self.stop,
            )
            # A stop that lands after the last fragment still wins over the commit
            self.stop.check()
        except BaseException:
            # Stop, task cancellation or anything the stream let through
            self._state = RoundState.ROLLING_BACK
            self.history.rollback(snapshot)
            self.logger.info("round_abandoned")
            raise

        outcome = result.outcome
        if outcome.is_valid and result.raw_text is not None:
            self._state = RoundState.COMMITTING
            self.history.commit_round(Message.assistant(result.raw_text))
            self._rounds_completed += 1
            self.logger.debug("round_committed", history_messages=len(self.history))
        else:
            self._state = RoundState.ROLLING_BACK
            self.history.rollback(snapshot)
            self.logger.debug("round_rolled_back", history_messages=len(self.history))

        return outcome

    async def _wait_after(self, outcome: RoundOutcome | None) -> None:
        self._state = RoundState.WAITING
        if outcome is not None and outcome.is_rejected:
            await self.scheduler.countdown(
                self.timing.invalid_retry_delay,
                prefix=outcome.display_text,
            )
        else:
            await self.scheduler.countdown(self.timing.capture_interval)
