"""Context budget management: trimming history and assembling requests."""

import logging
from collections.abc import Sequence
from typing import Any

from dwight.chat.tokens import estimate_total_tokens, message_cost
from dwight.chat.types import Attachment, ChatMessage, ModelProfile
from dwight.config.defaults import context_window_size

logger = logging.getLogger(__name__)

# Share of the context window available to history; the rest is left for the reply.
BUDGET_RATIO = 0.8

# The most recent messages that survive trimming regardless of budget.
MIN_KEPT_MESSAGES = 4

ATTACHMENTS_HEADER = "=== ATTACHED RESOURCES ==="
ATTACHMENTS_FOOTER = "=== END RESOURCES ==="
ATTACHMENTS_INSTRUCTION = (
    "Use the attached resources above as context when answering the user's questions."
)

_HISTORY_ROLES = ("user", "assistant")


def token_budget(model: str) -> int:
    """Usable history budget for a model (80% of its context window)."""
    return int(context_window_size(model) * BUDGET_RATIO)


def trim_to_context(history: list[ChatMessage], model: str) -> list[ChatMessage]:
    """Drop the oldest messages so the history fits the model's budget.

    The last ``MIN_KEPT_MESSAGES`` messages are always kept, even when they
    alone exceed the budget. Older messages are then accepted walking
    backwards while the cumulative cost stays within budget; the first one
    that would overflow, and everything before it, is dropped.

    Args:
        history: Messages in chronological order
        model: Backend model identifier used to look up the window

    Returns:
        The kept messages in their original order
    """
    budget = token_budget(model)

    if estimate_total_tokens(history) <= budget:
        return list(history)

    if len(history) <= MIN_KEPT_MESSAGES:
        return list(history)

    floor = history[-MIN_KEPT_MESSAGES:]
    used = estimate_total_tokens(floor)
    start = len(history) - MIN_KEPT_MESSAGES

    for index in range(start - 1, -1, -1):
        cost = message_cost(history[index])
        if used + cost > budget:
            break
        used += cost
        start = index

    kept = history[start:]
    logger.debug(
        "Trimmed history from %d to %d messages (%d/%d tokens)",
        len(history),
        len(kept),
        used,
        budget,
    )
    return list(kept)


def format_attachments(attachments: Sequence[Attachment]) -> str:
    """Render attached resources as a delimited block for the system prompt."""
    parts = [ATTACHMENTS_HEADER, ""]
    for attachment in attachments:
        parts.append(f"--- File: {attachment.name} ---")
        parts.append(attachment.text)
        parts.append("")
    parts.append(ATTACHMENTS_FOOTER)
    parts.append("")
    parts.append(ATTACHMENTS_INSTRUCTION)
    return "\n".join(parts)


def build_system_prompt(
    profile: ModelProfile,
    attachments: Sequence[Attachment] = (),
    preamble: str = "",
) -> str:
    """Combine the global preamble, profile prompt and attachment block."""
    sections = [text.strip() for text in (preamble, profile.system_prompt) if text.strip()]
    if attachments:
        sections.append(format_attachments(attachments))
    return "\n\n".join(sections)


def assemble_request(
    history: Sequence[ChatMessage],
    new_user_text: str,
    profile: ModelProfile,
    attachments: Sequence[Attachment] = (),
    preamble: str = "",
) -> list[dict[str, Any]]:
    """Build the ``messages`` array for a chat request.

    Args:
        history: Prior messages (already trimmed if desired)
        new_user_text: The user's new turn
        profile: Active profile supplying the system prompt
        attachments: Attached resources to embed in the system entry
        preamble: Global prompt placed before the profile's system prompt

    Returns:
        List of ``{"role", "content"}`` dicts: optional system entry,
        user/assistant history, then the new user entry
    """
    messages: list[dict[str, Any]] = []

    system_text = build_system_prompt(profile, attachments, preamble)
    if system_text:
        messages.append({"role": "system", "content": system_text})

    for msg in history:
        if msg.role in _HISTORY_ROLES:
            messages.append({"role": msg.role, "content": msg.content})

    messages.append({"role": "user", "content": new_user_text})
    return messages


def context_usage(history: Sequence[ChatMessage], model: str) -> tuple[int, int, int]:
    """Report (used tokens, window size, percent used) for display."""
    window = context_window_size(model)
    used = sum(msg.total_tokens for msg in history)
    percent = (used * 100) // window if window > 0 else 0
    return used, window, percent
