"""Classification of a streamed model response.

The model is asked to open its answer with ``valid request`` or
``invalid request: <reason>``. The classifier watches the fragments as they
arrive, decides which of the two it is as soon as the text allows, and while
the answer is valid produces a throttled, header-stripped projection for the
glasses display.
"""

from __future__ import annotations

import re
import time
from contextlib import aclosing
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncGenerator, Awaitable, Callable

from examsolver.common.errors import StopRequested
from examsolver.solver.cancellation import StopSignal

STREAM_MIN_INTERVAL = 0.35

_VALID_HEADER = re.compile(r"^valid(?:\s+request)?\b[:\-]?\s*", re.IGNORECASE)


def strip_valid_header(text: str) -> str:
    """Remove a leading ``valid`` / ``valid request`` header (``:`` or ``-`` allowed)."""
    stripped = _VALID_HEADER.sub("", text.lstrip(), count=1)
    return stripped.lstrip("\n\r \t")


class Validity(Enum):
    """Validity of a response as far as the stream has shown it."""

    UNDETERMINED = "undetermined"
    VALID = "valid"
    INVALID = "invalid"


def classify_head(text: str) -> Validity:
    """Decide validity from the start of the response text."""
    head = text.strip().lower()
    if head.startswith("valid"):
        return Validity.VALID
    if head.startswith("invalid"):
        return Validity.INVALID
    return Validity.UNDETERMINED


@dataclass(frozen=True)
class RoundOutcome:
    """Result of one AI round, shown to the user."""

    display_text: str
    # True = usable answer; False = rejected by the model or failed.
    is_valid: bool
    # True = system / network / parsing error, not a model-level rejection.
    is_error: bool

    @classmethod
    def valid(cls, text: str) -> RoundOutcome:
        return cls(text, is_valid=True, is_error=False)

    @classmethod
    def rejected(cls, text: str) -> RoundOutcome:
        return cls(text, is_valid=False, is_error=False)

    @classmethod
    def error(cls, text: str) -> RoundOutcome:
        return cls(text, is_valid=False, is_error=True)

    @property
    def is_rejected(self) -> bool:
        return not self.is_valid and not self.is_error


@dataclass(frozen=True)
class Classification:
    """Outcome plus the raw response text to store in history (valid rounds only)."""

    outcome: RoundOutcome
    raw_text: str | None = None


PartialHandler = Callable[[str], Awaitable[None]]


class StreamClassifier:
    """Classifies one round's response stream.

    Feed fragments with ``feed()`` and close with ``finish()`` or ``fail()``,
    or let ``consume()`` drive an async fragment iterator end to end. A
    classifier instance serves a single round.

    Example:
        classifier = StreamClassifier()
        result = await classifier.consume(chat.stream_text(history.to_payload(), model))
        if result.outcome.is_valid:
            history.commit_round(Message.assistant(result.raw_text))
    """

    def __init__(
        self,
        min_interval: float = STREAM_MIN_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the classifier.

        Args:
            min_interval: Minimum seconds between two partial emissions.
            clock: Monotonic clock used for throttling.
        """
        self.min_interval = min_interval
        self._clock = clock
        self._text = ""
        self._validity = Validity.UNDETERMINED
        self._last_emit_at: float | None = None

    @property
    def validity(self) -> Validity:
        return self._validity

    @property
    def text(self) -> str:
        """Raw text received so far."""
        return self._text

    def feed(self, fragment: str) -> str | None:
        """Add a fragment.

        Returns:
            The answer-so-far to display, or None when nothing is due
            (undecided or invalid response, blank text, or throttled).
        """
        if not fragment:
            return None

        self._text += fragment

        if self._validity is Validity.UNDETERMINED:
            self._validity = classify_head(self._text)

        if self._validity is not Validity.VALID:
            return None

        partial = strip_valid_header(self._text)
        if not partial.strip():
            return None

        now = self._clock()
        if self._last_emit_at is not None and now - self._last_emit_at < self.min_interval:
            return None

        self._last_emit_at = now
        return partial

    def finish(self) -> Classification:
        """Classify a stream that completed normally."""
        if self._validity is Validity.INVALID:
            return Classification(RoundOutcome.rejected(self._text.strip()))

        if self._validity is Validity.UNDETERMINED:
            return Classification(
                RoundOutcome.error("Error: Cannot determine valid/invalid from stream.")
            )

        final_text = strip_valid_header(self._text).strip()
        if not final_text:
            return Classification(RoundOutcome.error("Error: Empty assistant output."))

        return Classification(RoundOutcome.valid(final_text), raw_text=self._text)

    def fail(self, error: BaseException | str) -> Classification:
        """Classify a stream that ended with an error. Partial text is dropped."""
        self._text = ""
        description = str(error) or type(error).__name__
        return Classification(RoundOutcome.error(f"Error: {description}"))

    async def consume(
        self,
        fragments: AsyncGenerator[str, None],
        on_partial: PartialHandler | None = None,
        stop: StopSignal | None = None,
    ) -> Classification:
        """Drive a whole fragment stream through the classifier.

        Args:
            fragments: Response text fragments in arrival order. The
                generator is closed when consumption ends.
            on_partial: Awaited with each answer-so-far that is due for display.
            stop: Raced against every wait for the next fragment.

        Returns:
            The classification. Errors raised by the stream, including errors
            while closing it, become a system error outcome.

        Raises:
            StopRequested: If ``stop`` is set while the stream is open. The
                stream is closed and the round must not be committed.
        """
        try:
            async with aclosing(fragments) as stream:
                while True:
                    fragment = await _next_fragment(stream, stop)
                    if fragment is _END:
                        break
                    partial = self.feed(fragment)
                    if partial is not None and on_partial is not None:
                        await on_partial(partial)
        except StopRequested:
            raise
        except Exception as e:
            return self.fail(e)

        return self.finish()


_END = object()


async def _next_fragment(stream: AsyncGenerator[str, None], stop: StopSignal | None) -> Any:
    """Next fragment, or ``_END`` once the stream is exhausted."""
    if stop is not None:
        return await stop.race(_anext_or_end(stream))
    return await _anext_or_end(stream)


async def _anext_or_end(stream: AsyncGenerator[str, None]) -> Any:
    try:
        return await stream.__anext__()
    except StopAsyncIteration:
        return _END
