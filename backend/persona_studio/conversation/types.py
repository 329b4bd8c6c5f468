"""Conversation data structures."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterator, Literal

SenderType = Literal["user", "persona"]
MessageType = Literal["text", "audio", "video"]
ConversationType = Literal["chat", "video_call", "voice_call"]

CONVERSATION_TYPES: frozenset[str] = frozenset({"chat", "video_call", "voice_call"})


@dataclass(slots=True)
class Message:
    id: str
    sender_type: SenderType
    content: str
    timestamp: str
    message_type: MessageType = "text"


@dataclass(slots=True)
class SendResult:
    user_message: Message
    reply: Message | None = None
    error: str | None = None


class MessageLog:
    """Append-only, insertion-ordered transcript."""

    def __init__(self) -> None:
        self._messages: list[Message] = []

    def append(self, message: Message) -> None:
        self._messages.append(message)

    def first(self) -> Message | None:
        return self._messages[0] if self._messages else None

    def items(self) -> list[Message]:
        return [replace(item) for item in self._messages]

    def __iter__(self) -> Iterator[Message]:
        return iter(self.items())

    def __len__(self) -> int:
        return len(self._messages)


__all__ = [
    "SenderType",
    "MessageType",
    "ConversationType",
    "CONVERSATION_TYPES",
    "Message",
    "SendResult",
    "MessageLog",
]
