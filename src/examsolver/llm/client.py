"""Streaming chat-completion clients."""

from __future__ import annotations

import asyncio
import json
import time
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, AsyncIterator

import httpx

from examsolver.common.errors import StreamError
from examsolver.common.logging import get_logger
from examsolver.config import Config


@dataclass
class ChatChunk:
    """Streaming chat response chunk."""

    content: str
    done: bool
    finish_reason: str | None = None
    latency_ms: int = 0


class ChatClient:
    """Abstract streaming chat client."""

    async def connect(self) -> None:
        """Prepare the client."""
        pass

    async def disconnect(self) -> None:
        """Release the client."""
        pass

    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
    ) -> AsyncIterator[ChatChunk]:
        """Stream a chat completion.

        Raises:
            StreamError: On transport, HTTP or parse failure.
        """
        raise NotImplementedError

    async def stream_text(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
    ) -> AsyncIterator[str]:
        """Stream only the non-empty text deltas of a chat completion."""
        async with aclosing(self.chat(messages, model)) as chunks:
            async for chunk in chunks:
                if chunk.content:
                    yield chunk.content


class OpenAICompatibleClient(ChatClient):
    """OpenAI-compatible chat client (OpenAI, Poe, LAN servers)."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        default_model: str = "GPT-5.2",
        timeout_seconds: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.default_model = default_model
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self.logger = get_logger("llm_client")

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
    ) -> AsyncIterator[ChatChunk]:
        """Chat using the ``/chat/completions`` endpoint with SSE streaming."""
        model = model or self.default_model
        start_time = time.time()

        payload: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "stream": True,
        }

        self.logger.debug(
            "sending_streaming_request",
            model=model,
            history_messages=len(messages),
        )

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds,
                transport=self._transport,
            ) as client:
                async with client.stream(
                    "POST",
                    f"{self.base_url}/chat/completions",
                    headers=self._headers(),
                    json=payload,
                ) as response:
                    if response.status_code >= 400:
                        body = (await response.aread()).decode("utf-8", errors="replace")
                        raise StreamError(f"HTTP {response.status_code}: {body[:200]}")

                    async for line in response.aiter_lines():
                        if not line.startswith("data:"):
                            continue

                        data = line[5:].strip()
                        if data == "[DONE]":
                            yield ChatChunk(
                                content="",
                                done=True,
                                finish_reason="stop",
                                latency_ms=int((time.time() - start_time) * 1000),
                            )
                            break

                        chunk = _parse_chunk(data)
                        choice = (chunk.get("choices") or [{}])[0]
                        content = (choice.get("delta") or {}).get("content") or ""
                        finish_reason = choice.get("finish_reason")

                        if content or finish_reason:
                            yield ChatChunk(
                                content=content,
                                done=finish_reason is not None,
                                finish_reason=finish_reason,
                                latency_ms=int((time.time() - start_time) * 1000),
                            )

        except httpx.HTTPError as e:
            self.logger.error("chat_stream_failed", error=str(e))
            raise StreamError(str(e) or type(e).__name__) from e


def _parse_chunk(data: str) -> dict[str, Any]:
    """Parse one SSE data payload."""
    try:
        chunk = json.loads(data)
    except json.JSONDecodeError as e:
        raise StreamError(f"Malformed stream chunk: {data[:80]}") from e

    if not isinstance(chunk, dict):
        raise StreamError(f"Unexpected stream chunk: {data[:80]}")

    error = chunk.get("error")
    if error:
        message = error.get("message") if isinstance(error, dict) else str(error)
        raise StreamError(f"Service error: {message}")

    return chunk


MOCK_ANSWER = (
    "valid request\n"
    "Q1: (2 + 2 is basic addition) **4**\n"
    "Q2: (the capital of France) **Paris**"
)

MOCK_NO_IMAGE = "invalid request: no image attached"


class MockChatClient(ChatClient):
    """Mock chat client streaming scripted answers word by word.

    Args:
        responses: Answers returned in turn, cycling. Defaults to a single
            valid exam answer.
        delay: Seconds between fragments.
    """

    def __init__(self, responses: list[str] | None = None, delay: float = 0.02) -> None:
        self.responses = responses or [MOCK_ANSWER]
        self.delay = delay
        self.requests: list[list[dict[str, Any]]] = []
        self._index = 0

    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
    ) -> AsyncIterator[ChatChunk]:
        """Mock chat response."""
        self.requests.append(messages)

        if not _has_image(messages):
            response_text = MOCK_NO_IMAGE
        else:
            response_text = self.responses[self._index % len(self.responses)]
            self._index += 1

        # Keep whitespace (including newlines) attached to the preceding word
        words = response_text.split(" ")
        for i, word in enumerate(words):
            await asyncio.sleep(self.delay)
            last = i == len(words) - 1
            yield ChatChunk(
                content=word + ("" if last else " "),
                done=last,
                finish_reason="stop" if last else None,
                latency_ms=int(self.delay * 1000) * (i + 1),
            )


def _has_image(messages: list[dict[str, Any]]) -> bool:
    """Whether the last user message carries an image part."""
    for message in reversed(messages):
        if message.get("role") != "user":
            continue
        content = message.get("content")
        return isinstance(content, list) and any(
            part.get("type") == "image_url" for part in content
        )
    return False


def create_chat_client(config: Config) -> ChatClient:
    """Create the chat client for this configuration."""
    if config.mock_mode:
        return MockChatClient()
    return OpenAICompatibleClient(
        config.llm.base_url,
        api_key=config.llm.api_key,
        default_model=config.llm.model,
        timeout_seconds=config.llm.timeout_seconds,
    )
