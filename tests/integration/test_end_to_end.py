"""End-to-end integration tests for Exam Solver."""

import asyncio

import pytest

from examsolver.app import ExamSolverApp
from examsolver.common.errors import ConfigurationError
from examsolver.config import Config
from examsolver.devices.glasses import MockGlassesClient
from examsolver.llm.client import MockChatClient
from examsolver.solver import RoundState


async def wait_for(predicate, timeout: float = 5.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


@pytest.mark.integration
class TestEndToEndFlow:
    """End-to-end flow tests."""

    @pytest.mark.asyncio
    async def test_auto_capture_flow(self, mock_config: Config):
        """Test the complete auto-capture loop with mock devices.

        1. Glasses capture a photo
        2. The chat service streams a valid answer
        3. The answer is committed and shown on the glasses
        4. The loop keeps going until shut down
        """
        glasses = MockGlassesClient()
        chat = MockChatClient(delay=0)
        app = ExamSolverApp(mock_config, glasses=glasses, chat=chat)

        task = asyncio.create_task(app.run())
        await wait_for(lambda: app._started and app.executor.rounds_completed >= 2)
        app.shutdown()
        await asyncio.wait_for(task, timeout=5)

        executor = app.executor
        assert executor.state is RoundState.STOPPED
        assert executor.last_outcome is not None and executor.last_outcome.is_valid
        assert glasses.get_status()["captures"] >= 2
        assert any(force for _, force in glasses.shown)
        assert executor.presenter.persistent_answer.startswith("Q1:")

        history = executor.history
        assert history.messages[0].content == mock_config.history.system_prompt
        assert len(history) <= 1 + 2 * mock_config.history.max_rounds
        assert not history.round_open

    @pytest.mark.asyncio
    async def test_rejections_leave_history_empty(self, mock_config: Config):
        """Test rejected rounds never reach the history."""
        chat = MockChatClient(responses=["invalid request: not an exam"], delay=0)
        app = ExamSolverApp(mock_config, glasses=MockGlassesClient(), chat=chat)

        task = asyncio.create_task(app.run())
        await wait_for(lambda: len(chat.requests) >= 3)
        app.shutdown()
        await asyncio.wait_for(task, timeout=5)

        assert len(app.executor.history) == 1
        assert app.executor.rounds_completed == 0
        # Each request carried only the system prompt and its own question
        assert all(len(messages) == 2 for messages in chat.requests)

    @pytest.mark.asyncio
    async def test_context_manager(self, mock_config: Config):
        """Test the app can be driven round by round."""
        async with ExamSolverApp(mock_config, chat=MockChatClient(delay=0)) as app:
            outcome = await app.executor.run_round()

        assert outcome.is_valid
        assert app.executor.rounds_completed == 1

    @pytest.mark.asyncio
    async def test_unconfigured_service_fails_fast(self, mock_config: Config):
        """Test start refuses to run without chat service settings."""
        mock_config.mock_mode = False
        mock_config.llm.api_key = None
        app = ExamSolverApp(mock_config)

        with pytest.raises(ConfigurationError):
            await app.start()
