"""Token estimation when the backend did not report an exact count."""

from dwight.chat.types import ChatMessage


def estimate_tokens(text: str) -> int:
    """Estimate token count for a text blob.

    Uses a simple heuristic: ~4 characters per token.

    Args:
        text: Text to estimate

    Returns:
        Estimated token count
    """
    return len(text) // 4


def message_cost(message: ChatMessage) -> int:
    """Token cost of a message: recorded total if known, else an estimate."""
    if message.total_tokens > 0:
        return message.total_tokens
    return estimate_tokens(message.content)


def estimate_total_tokens(messages: list[ChatMessage]) -> int:
    """Total token cost of a list of messages.

    Args:
        messages: List of messages

    Returns:
        Sum of per-message costs
    """
    return sum(message_cost(msg) for msg in messages)
