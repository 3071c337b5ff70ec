"""Consumer for the backend's newline-delimited JSON chat stream.

Each line of a streamed ``/api/chat`` reply is an independent JSON record::

    {"message": {"content": "He"}, "done": false}
    {"message": {"content": "llo!"}, "done": false}
    {"message": {"content": ""}, "done": true, "prompt_eval_count": 5, "eval_count": 2}

Fragments are concatenated strictly in arrival order. Malformed lines are
skipped; a stream that ends without a ``done`` record is an error.
"""

import json
import logging
from collections.abc import AsyncIterator, Iterable
from typing import Any

from dwight.chat.types import ChatResult, ContentDelta
from dwight.errors import RequestFailed, StreamTruncated

logger = logging.getLogger(__name__)


def _fragment(record: dict[str, Any]) -> str:
    message = record.get("message")
    if isinstance(message, dict):
        content = message.get("content")
        if isinstance(content, str):
            return content
    return ""


def _count(record: dict[str, Any], key: str) -> int:
    value = record.get(key)
    return value if isinstance(value, int) else 0


def parse_chat_response(body: dict[str, Any]) -> ChatResult:
    """Build a result from a non-streaming ``/api/chat`` body.

    Args:
        body: Parsed JSON response

    Returns:
        ChatResult with content and token counts
    """
    if "error" in body:
        raise RequestFailed(f"Backend error: {body['error']}")

    prompt_tokens = _count(body, "prompt_eval_count")
    return ChatResult(
        content=_fragment(body),
        prompt_tokens=prompt_tokens,
        total_tokens=prompt_tokens + _count(body, "eval_count"),
    )


class StreamConsumer:
    """Incremental parser for one streamed reply."""

    def __init__(self) -> None:
        self._parts: list[str] = []
        self.result: ChatResult | None = None
        self.last_fragment = ""
        self.skipped = 0

    @property
    def done(self) -> bool:
        return self.result is not None

    @property
    def text(self) -> str:
        """Content accumulated so far."""
        return "".join(self._parts)

    def feed(self, line: str | bytes) -> ContentDelta | ChatResult | None:
        """Process one line of the stream.

        Args:
            line: A raw line (without or with trailing newline)

        Returns:
            ContentDelta for a non-empty fragment, ChatResult for the terminal
            record, or None for blank/malformed/empty records
        """
        if self.done:
            return None

        if isinstance(line, bytes):
            line = line.decode("utf-8", errors="replace")
        line = line.strip()
        if not line:
            return None

        try:
            record = json.loads(line)
        except json.JSONDecodeError:
            self.skipped += 1
            logger.debug("Skipping malformed stream record: %.80s", line)
            return None

        if not isinstance(record, dict):
            self.skipped += 1
            logger.debug("Skipping non-object stream record: %.80s", line)
            return None

        if "error" in record:
            raise RequestFailed(f"Backend error: {record['error']}")

        fragment = _fragment(record)
        self.last_fragment = fragment
        if fragment:
            self._parts.append(fragment)

        if record.get("done") is True:
            prompt_tokens = _count(record, "prompt_eval_count")
            self.result = ChatResult(
                content=self.text,
                prompt_tokens=prompt_tokens,
                total_tokens=prompt_tokens + _count(record, "eval_count"),
            )
            return self.result

        return ContentDelta(fragment) if fragment else None

    def finish(self) -> ChatResult:
        """Return the terminal result, or raise if the stream was cut short."""
        if self.result is None:
            raise StreamTruncated("Stream ended without a terminal record")
        return self.result


def consume_iterable(lines: Iterable[str | bytes]) -> ChatResult:
    """Consume an already-buffered stream and return its result."""
    consumer = StreamConsumer()
    for line in lines:
        if isinstance(consumer.feed(line), ChatResult):
            break
    return consumer.finish()


async def consume_lines(
    lines: AsyncIterator[str],
) -> AsyncIterator[ContentDelta | ChatResult]:
    """Yield content deltas in order, then the terminal result.

    Args:
        lines: Async iterator over stream lines

    Yields:
        ContentDelta for each non-empty fragment, finally one ChatResult

    Raises:
        StreamTruncated: If the lines run out before a ``done`` record
        RequestFailed: If the backend reports an error record
    """
    consumer = StreamConsumer()
    async for line in lines:
        event = consumer.feed(line)
        if event is None:
            continue
        if isinstance(event, ChatResult):
            if consumer.last_fragment:
                yield ContentDelta(consumer.last_fragment)
            yield event
            return
        yield event

    yield consumer.finish()
