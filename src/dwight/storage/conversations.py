"""JSON-file storage for saved conversations."""

from __future__ import annotations

import copy
import logging
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from dwight.errors import ConversationNotFound, PersistenceError
from dwight.storage.export import RENDERERS, render_json, render_markdown, render_plain_text
from dwight.storage.schema import Conversation, ConversationMetadata

logger = logging.getLogger(__name__)


class ConversationStore:
    """One indented JSON file per conversation, named ``<id>.json``."""

    def __init__(self, directory: str | Path):
        """Initialize the store.

        Args:
            directory: Storage directory (created on first save)
        """
        self.directory = Path(directory).expanduser()

    def _path(self, conversation_id: str) -> Path:
        if not conversation_id or "/" in conversation_id or "\\" in conversation_id:
            raise ConversationNotFound(f"Invalid conversation id: {conversation_id!r}")
        return self.directory / f"{conversation_id}.json"

    def save(self, conversation: Conversation) -> None:
        """Persist a conversation, refreshing its aggregates and timestamp.

        Args:
            conversation: Conversation to save (updated in place)

        Raises:
            PersistenceError: If the file cannot be written
        """
        conversation.refresh_aggregates()
        conversation.last_modified = datetime.now()

        stored = conversation.model_copy(update={"messages": copy.deepcopy(conversation.messages)})
        path = self._path(conversation.id)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            path.write_text(stored.model_dump_json(indent=2), encoding="utf-8")
        except OSError as e:
            raise PersistenceError(f"Failed to save conversation {conversation.id}: {e}") from e

        logger.debug("Saved conversation %s (%d messages)", conversation.id, conversation.message_count)

    def load(self, conversation_id: str) -> Conversation:
        """Load a conversation by id.

        Raises:
            ConversationNotFound: If no file exists for the id
            PersistenceError: If the file cannot be read or parsed
        """
        path = self._path(conversation_id)
        try:
            data = path.read_bytes()
        except FileNotFoundError as e:
            raise ConversationNotFound(f"Conversation not found: {conversation_id}") from e
        except OSError as e:
            raise PersistenceError(f"Failed to read conversation {conversation_id}: {e}") from e

        try:
            return Conversation.model_validate_json(data)
        except ValidationError as e:
            raise PersistenceError(f"Failed to parse conversation {conversation_id}: {e}") from e

    def delete(self, conversation_id: str) -> None:
        """Remove a conversation file.

        Raises:
            ConversationNotFound: If no file exists for the id
            PersistenceError: If the file cannot be removed
        """
        path = self._path(conversation_id)
        try:
            path.unlink()
        except FileNotFoundError as e:
            raise ConversationNotFound(f"Conversation not found: {conversation_id}") from e
        except OSError as e:
            raise PersistenceError(f"Failed to delete conversation {conversation_id}: {e}") from e

    def list(self) -> list[ConversationMetadata]:
        """Metadata for every readable conversation, newest first."""
        if not self.directory.is_dir():
            return []

        conversations = []
        for path in self.directory.glob("*.json"):
            if not path.is_file():
                continue
            try:
                conv = self.load(path.stem)
            except PersistenceError as e:
                logger.debug("Skipping unreadable conversation file %s: %s", path.name, e)
                continue
            conversations.append(conv.metadata())

        conversations.sort(key=lambda meta: meta.last_modified, reverse=True)
        return conversations

    def search(self, query: str) -> list[ConversationMetadata]:
        """Case-insensitive substring match on title, model or any tag."""
        conversations = self.list()
        if not query:
            return conversations

        needle = query.lower()
        return [
            meta
            for meta in conversations
            if needle in meta.title.lower()
            or needle in meta.model.lower()
            or any(needle in tag.lower() for tag in meta.tags)
        ]

    def export_markdown(self, conversation_id: str) -> str:
        return render_markdown(self.load(conversation_id))

    def export_json(self, conversation_id: str) -> str:
        return render_json(self.load(conversation_id))

    def export_plain_text(self, conversation_id: str) -> str:
        return render_plain_text(self.load(conversation_id))

    def export(self, conversation_id: str, fmt: str) -> str:
        """Render a conversation in ``markdown``, ``json`` or ``text`` format.

        The caller is responsible for writing the result anywhere.
        """
        renderer = RENDERERS.get(fmt)
        if renderer is None:
            raise ValueError(f"Unknown export format: {fmt}")
        return renderer(self.load(conversation_id))
