"""Conversation persistence and export."""

from .conversations import ConversationStore
from .schema import Conversation, ConversationMetadata

__all__ = ["Conversation", "ConversationMetadata", "ConversationStore"]
