"""Conversation history with transactional rounds."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator

from examsolver.common.errors import HistoryError

DEFAULT_MAX_ROUNDS = 5


class Role(str, Enum):
    """Chat message role."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    """Chat message, optionally carrying one inline image."""

    role: Role
    content: str
    image_url: str | None = None

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(Role.SYSTEM, content)

    @classmethod
    def user(cls, content: str, jpeg_bytes: bytes | None = None) -> Message:
        """Build a user message, embedding ``jpeg_bytes`` as a data URL."""
        image_url = None
        if jpeg_bytes is not None:
            encoded = base64.b64encode(jpeg_bytes).decode("ascii")
            image_url = f"data:image/jpeg;base64,{encoded}"
        return cls(Role.USER, content, image_url)

    @classmethod
    def assistant(cls, content: str) -> Message:
        return cls(Role.ASSISTANT, content)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for an OpenAI-compatible chat request."""
        if self.image_url is None:
            return {"role": self.role.value, "content": self.content}

        return {
            "role": self.role.value,
            "content": [
                {"type": "text", "text": self.content},
                {"type": "image_url", "image_url": {"url": self.image_url}},
            ],
        }


class ConversationHistory:
    """Bounded message log with a pinned leading system message.

    Rounds are transactional. ``begin_round`` appends the provisional user
    message, then exactly one of ``commit_round`` (append the assistant reply
    and trim) or ``rollback`` (restore the pre-round snapshot) closes it.
    Between rounds the non-system messages are always complete user/assistant
    pairs, at most ``max_rounds`` of them.
    """

    def __init__(
        self,
        system_prompt: str | None = None,
        max_rounds: int = DEFAULT_MAX_ROUNDS,
    ) -> None:
        if max_rounds < 0:
            raise ValueError("max_rounds must be >= 0")

        self.max_rounds = max_rounds
        self._messages: list[Message] = []
        self._round_open = False

        if system_prompt is not None:
            self._messages.append(Message.system(system_prompt))

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def round_open(self) -> bool:
        """True between ``begin_round`` and its commit or rollback."""
        return self._round_open

    @property
    def rounds(self) -> int:
        """Number of committed user/assistant pairs currently kept."""
        return sum(1 for m in self._messages if m.role == Role.ASSISTANT)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))

    def snapshot(self) -> tuple[Message, ...]:
        """Copy of the current sequence, for ``rollback``."""
        return tuple(self._messages)

    def begin_round(self, user_message: Message) -> None:
        """Append the round's provisional user message. Does not trim."""
        if self._round_open:
            raise HistoryError("A round is already in progress")
        if user_message.role != Role.USER:
            raise HistoryError(f"Round must start with a user message, got {user_message.role.value}")

        self._messages.append(user_message)
        self._round_open = True

    def commit_round(self, assistant_message: Message) -> None:
        """Append the assistant reply, then trim to ``max_rounds`` pairs."""
        if not self._round_open:
            raise HistoryError("No round in progress")
        if assistant_message.role != Role.ASSISTANT:
            raise HistoryError(
                f"Round must end with an assistant message, got {assistant_message.role.value}"
            )

        self._messages.append(assistant_message)
        self._round_open = False
        self.trim()

    def rollback(self, snapshot: tuple[Message, ...] | list[Message]) -> None:
        """Replace the whole sequence with ``snapshot``, closing any open round."""
        self._messages = list(snapshot)
        self._round_open = False

    def trim(self) -> None:
        """Keep the leading system message and the newest ``2 * max_rounds`` others."""
        if not self._messages:
            return

        prefix: list[Message] = []
        rest = self._messages
        if rest[0].role == Role.SYSTEM:
            prefix = [rest[0]]
            rest = rest[1:]

        keep = 2 * self.max_rounds
        if len(rest) > keep:
            rest = rest[len(rest) - keep:]

        self._messages = prefix + list(rest)

    def to_payload(self) -> list[dict[str, Any]]:
        """All messages serialized for the chat request."""
        return [m.to_dict() for m in self._messages]
