"""Pytest configuration and fixtures for Exam Solver tests."""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Callable

import pytest

from examsolver.common.errors import CaptureError
from examsolver.config import Config, TimingConfig
from examsolver.devices.glasses import (
    CaptureOptions,
    CapturedImage,
    DisplayOptions,
    GlassesClient,
)
from examsolver.llm.client import ChatChunk, ChatClient
from examsolver.solver import (
    ConversationHistory,
    DisplayPresenter,
    RoundExecutor,
    RoundScheduler,
    StopSignal,
)

SYSTEM_PROMPT = "You are a test assistant."
FAKE_JPEG = b"\xff\xd8\xff\xe0fake-jpeg\xff\xd9"


def pytest_addoption(parser: pytest.Parser) -> None:
    """Add custom command line options."""
    parser.addoption(
        "--slow",
        action="store_true",
        default=False,
        help="Run slow tests",
    )


def pytest_configure(config: pytest.Config) -> None:
    """Configure test markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow running tests")


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Skip slow tests unless --slow flag is set."""
    if not config.getoption("--slow"):
        skip_slow = pytest.mark.skip(reason="Need --slow option to run")
        for item in items:
            if "slow" in item.keywords:
                item.add_marker(skip_slow)


class FakeGlasses(GlassesClient):
    """Glasses double recording every display call.

    Args:
        capture_failures: Number of leading captures that fail.
    """

    def __init__(self, capture_failures: int = 0) -> None:
        self.capture_failures = capture_failures
        self.captures = 0
        self.capture_options: list[CaptureOptions | None] = []
        self.displays: list[tuple[str, bool]] = []

    async def capture(self, options: CaptureOptions | None = None) -> CapturedImage:
        self.captures += 1
        self.capture_options.append(options)
        if self.capture_failures > 0:
            self.capture_failures -= 1
            raise CaptureError("camera busy")
        return CapturedImage(jpeg_bytes=FAKE_JPEG, width=640, height=480)

    async def display(self, text: str, options: DisplayOptions | None = None) -> bool:
        options = options or DisplayOptions()
        self.displays.append((text, options.force))
        return True

    def get_status(self) -> dict:
        return {"available": True, "type": "fake"}

    @property
    def texts(self) -> list[str]:
        return [text for text, _ in self.displays]


Script = list[Any]


class ScriptedChat(ChatClient):
    """Chat double replaying scripted fragment sequences, one per request.

    A script item is a text fragment, an exception to raise at that point,
    or a zero-argument callable invoked at that point (for side effects such
    as requesting a stop). The last script repeats once the list runs out.
    """

    def __init__(self, *scripts: Script) -> None:
        self.scripts = list(scripts)
        self.requests: list[tuple[list[dict[str, Any]], str | None]] = []
        self.closed = 0

    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
    ) -> AsyncIterator[ChatChunk]:
        index = min(len(self.requests), len(self.scripts) - 1)
        self.requests.append((messages, model))
        try:
            for item in self.scripts[index]:
                if isinstance(item, BaseException):
                    raise item
                if callable(item):
                    item()
                    continue
                await asyncio.sleep(0)
                yield ChatChunk(content=item, done=False)
        finally:
            self.closed += 1


class InstantSleep:
    """Records requested sleeps; sets ``stop`` after ``limit`` of them."""

    def __init__(self, stop: StopSignal | None = None, limit: int | None = None) -> None:
        self.stop = stop
        self.limit = limit
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        await asyncio.sleep(0)
        if self.stop is not None and self.limit is not None and len(self.calls) >= self.limit:
            self.stop.set()


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 100.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def mock_config() -> Config:
    """Get mock configuration with short timings."""
    cfg = Config()
    cfg.mock_mode = True
    cfg.device.mode = "development"
    cfg.device.log_level = "DEBUG"
    cfg.timing = TimingConfig(
        initial_delay=0.0,
        capture_interval=0.01,
        invalid_retry_delay=0.01,
        stream_min_interval=0.0,
    )
    return cfg


@pytest.fixture
def glasses() -> FakeGlasses:
    return FakeGlasses()


@pytest.fixture
def stop() -> StopSignal:
    return StopSignal()


@pytest.fixture
def history() -> ConversationHistory:
    return ConversationHistory(system_prompt=SYSTEM_PROMPT, max_rounds=5)


@pytest.fixture
def make_executor(
    glasses: FakeGlasses,
    stop: StopSignal,
    history: ConversationHistory,
) -> Callable[..., RoundExecutor]:
    """Build an executor around fakes; countdowns never really sleep."""

    def factory(
        chat: ChatClient,
        sleep: InstantSleep | None = None,
        clock: Callable[[], float] | None = None,
        **kwargs: Any,
    ) -> RoundExecutor:
        presenter = DisplayPresenter(glasses)
        scheduler = RoundScheduler(presenter, stop, sleep=sleep or InstantSleep())
        return RoundExecutor(
            glasses=glasses,
            chat=chat,
            history=history,
            presenter=presenter,
            scheduler=scheduler,
            stop=stop,
            model="test-model",
            clock=clock or FakeClock(),
            **kwargs,
        )

    return factory
