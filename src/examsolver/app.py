"""Exam Solver app - wires configuration, devices and the round loop."""

from __future__ import annotations

import asyncio
import signal
from typing import Any

from examsolver.common.logging import get_logger, setup_logging
from examsolver.config import Config, load_config, require_llm_settings
from examsolver.devices.glasses import (
    GlassesClient,
    capture_options,
    create_glasses_client,
)
from examsolver.llm.client import ChatClient, create_chat_client
from examsolver.solver import (
    ConversationHistory,
    DisplayPresenter,
    RoundExecutor,
    RoundScheduler,
    StopSignal,
)


class ExamSolverApp:
    """Auto-capture exam solver running on the glasses.

    Example:
        async with ExamSolverApp(mock_mode=True) as app:
            await app.executor.run()
    """

    def __init__(
        self,
        config: Config | None = None,
        mock_mode: bool | None = None,
        glasses: GlassesClient | None = None,
        chat: ChatClient | None = None,
    ) -> None:
        """Initialize the app.

        Args:
            config: Configuration (loaded from env/file if None).
            mock_mode: Override the configured mock mode.
            glasses: Glasses client (created from config if None).
            chat: Chat client (created from config if None).
        """
        self.config = config or load_config()
        if mock_mode is not None:
            self.config.mock_mode = mock_mode

        setup_logging(
            level=self.config.device.log_level,
            json_output=self.config.device.mode == "production",
            service_name="examsolver",
        )
        self.logger = get_logger("examsolver")

        self._glasses = glasses
        self._chat = chat
        self._executor: RoundExecutor | None = None
        self._started = False

    @property
    def executor(self) -> RoundExecutor:
        """Get the round executor."""
        if not self._executor:
            raise RuntimeError("App not started. Call await app.start() first.")
        return self._executor

    async def start(self) -> None:
        """Validate settings, connect the devices and build the round loop.

        Raises:
            ConfigurationError: If chat service settings are missing.
        """
        if self._started:
            return

        require_llm_settings(self.config)

        self.logger.info(
            "app_starting",
            mock_mode=self.config.mock_mode,
            model=self.config.llm.model,
        )

        self._glasses = self._glasses or create_glasses_client(self.config)
        self._chat = self._chat or create_chat_client(self.config)

        await self._glasses.connect()
        await self._chat.connect()

        stop = StopSignal()
        presenter = DisplayPresenter(self._glasses)
        self._executor = RoundExecutor(
            glasses=self._glasses,
            chat=self._chat,
            history=ConversationHistory(
                system_prompt=self.config.history.system_prompt,
                max_rounds=self.config.history.max_rounds,
            ),
            presenter=presenter,
            scheduler=RoundScheduler(presenter, stop),
            stop=stop,
            model=self.config.llm.model,
            timing=self.config.timing,
            capture_options=capture_options(self.config),
        )

        self._started = True
        self.logger.info("app_started")

    async def stop(self) -> None:
        """Disconnect the devices."""
        if not self._started:
            return

        self.logger.info("app_stopping")

        if self._glasses:
            await self._glasses.disconnect()
        if self._chat:
            await self._chat.disconnect()

        self._started = False
        self.logger.info("app_stopped")

    def shutdown(self) -> None:
        """Signal the round loop to stop."""
        if self._executor:
            self._executor.stop_loop()

    async def run(self) -> None:
        """Start, run rounds until shut down, then stop."""
        await self.start()
        try:
            await self.executor.run()
        finally:
            await self.stop()

    def run_forever(self) -> None:
        """Run the app (blocking) until SIGINT/SIGTERM."""
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self.shutdown)

        try:
            loop.run_until_complete(self.run())
        finally:
            loop.close()

    async def __aenter__(self) -> ExamSolverApp:
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit."""
        await self.stop()
