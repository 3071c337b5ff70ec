"""Pydantic models for persisted conversations."""

import time
from datetime import datetime

from pydantic import BaseModel, Field

from dwight.chat.types import ChatMessage

TITLE_MAX_LENGTH = 50
UNTITLED = "Untitled Conversation"


class ConversationMetadata(BaseModel):
    """A conversation without its messages, used for listing."""

    id: str
    title: str
    model: str
    profile_name: str = ""
    created: datetime
    last_modified: datetime
    message_count: int = 0
    prompt_tokens: int = 0
    total_tokens: int = 0
    attached_resources: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class Conversation(ConversationMetadata):
    """A saved chat session."""

    messages: list[ChatMessage] = Field(default_factory=list)

    def refresh_aggregates(self) -> None:
        """Recompute message count and token sums from the message list."""
        self.message_count = len(self.messages)
        self.prompt_tokens = sum(msg.prompt_tokens for msg in self.messages)
        self.total_tokens = sum(msg.total_tokens for msg in self.messages)

    def metadata(self) -> ConversationMetadata:
        return ConversationMetadata.model_validate(self.model_dump(exclude={"messages"}))


_last_id_ns = 0


def new_conversation_id() -> str:
    """Time-derived conversation id (e.g., ``conv_1729262400123456789``).

    Strictly increasing within a process, even on coarse clocks.
    """
    global _last_id_ns
    _last_id_ns = max(time.time_ns(), _last_id_ns + 1)
    return f"conv_{_last_id_ns}"


def conversation_title(messages: list[ChatMessage]) -> str:
    """Title from the first user message, truncated and on one line."""
    for msg in messages:
        if msg.role == "user":
            title = msg.content
            if len(title) > TITLE_MAX_LENGTH:
                title = title[:TITLE_MAX_LENGTH] + "..."
            return " ".join(title.splitlines())
    return UNTITLED
