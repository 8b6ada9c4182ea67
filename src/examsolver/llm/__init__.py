"""Chat-completion clients."""

from examsolver.llm.client import (
    ChatChunk,
    ChatClient,
    MockChatClient,
    OpenAICompatibleClient,
    create_chat_client,
)

__all__ = [
    "ChatChunk",
    "ChatClient",
    "MockChatClient",
    "OpenAICompatibleClient",
    "create_chat_client",
]
