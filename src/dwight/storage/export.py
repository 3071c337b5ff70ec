"""Render conversations as Markdown, JSON or plain text."""

import re

from dwight.storage.schema import Conversation, ConversationMetadata

EXPORT_FORMATS = {
    "markdown": ".md",
    "json": ".json",
    "text": ".txt",
}

DISPLAY_DATE_FORMAT = "%B %d, %Y %I:%M %p"


def render_markdown(conv: Conversation) -> str:
    """Markdown export: H1 title, metadata block, one H2 per message."""
    lines = [
        f"# {conv.title}",
        "",
        f"**Model:** {conv.model} ({conv.profile_name})  ",
        f"**Created:** {conv.created.strftime(DISPLAY_DATE_FORMAT)}  ",
        f"**Messages:** {conv.message_count}  ",
        f"**Tokens:** {conv.total_tokens}  ",
        "",
    ]

    if conv.attached_resources:
        lines.append("**Attached Resources:**")
        lines.extend(f"- {path}" for path in conv.attached_resources)
        lines.append("")

    if conv.tags:
        lines.append(f"**Tags:** {', '.join(conv.tags)}")
        lines.append("")

    lines.extend(["---", ""])

    for msg in conv.messages:
        if msg.role == "user":
            lines.extend(["## 👤 User", ""])
        else:
            lines.extend(["## 🤖 Assistant", ""])
            if msg.duration > 0:
                lines.extend(
                    [
                        f"*Response time: {msg.duration:.1f}s | Tokens: {msg.total_tokens} "
                        f"(prompt: {msg.prompt_tokens}, response: {msg.response_tokens})*",
                        "",
                    ]
                )
        lines.extend([msg.content, "", "---", ""])

    return "\n".join(lines)


def render_json(conv: Conversation) -> str:
    """JSON export: the full conversation, indented."""
    return conv.model_dump_json(indent=2)


def render_plain_text(conv: Conversation) -> str:
    """Plain-text export with a title/model header and ruled messages."""
    parts = [
        f"{conv.title}\n",
        f"Model: {conv.model}\n",
        "=" * 50 + "\n\n",
    ]
    for msg in conv.messages:
        label = msg.role.upper()
        if msg.role == "assistant" and msg.duration > 0:
            label += f" ({msg.duration:.1f}s, {msg.total_tokens} tokens)"
        parts.append(f"{label}:\n{msg.content}\n\n")
        parts.append("-" * 30 + "\n\n")
    return "".join(parts)


RENDERERS = {
    "markdown": render_markdown,
    "json": render_json,
    "text": render_plain_text,
}


def export_filename(meta: ConversationMetadata, fmt: str) -> str:
    """Safe file name for an export, e.g. ``Hello_there_20261018_153000.md``."""
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unknown export format: {fmt}")

    safe_title = re.sub(r"[\\/:*?\"<>|]", "-", meta.title).replace(" ", "_")[:50]
    return f"{safe_title}_{meta.created.strftime('%Y%m%d_%H%M%S')}{EXPORT_FORMATS[fmt]}"
