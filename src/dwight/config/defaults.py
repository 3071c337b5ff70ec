"""Built-in defaults: model profiles and context window sizes."""

from dwight.chat.types import ModelProfile

# Context window table: (model-name substring, window size in tokens).
# Evaluated in order, first match wins.
CONTEXT_WINDOW_TABLE = [
    ("llama3.2", 128000),
    ("qwen2.5", 32768),
    ("llama3.1", 128000),
    ("mistral", 32768),
]

DEFAULT_CONTEXT_WINDOW = 8192

DEFAULT_PROFILES = [
    ModelProfile(
        name="Coder Assistant",
        model="qwen2.5-coder:7b",
        system_prompt="You are a helpful coding assistant. Provide clear, concise code examples.",
        temperature=0.7,
    ),
    ModelProfile(
        name="General Assistant",
        model="llama3.2:3b",
        system_prompt="You are a helpful AI assistant.",
        temperature=0.8,
    ),
    ModelProfile(
        name="Creative Writer",
        model="llama3.2:3b",
        system_prompt="You are a creative writing assistant. Be imaginative and descriptive.",
        temperature=0.9,
    ),
]


def context_window_size(model: str) -> int:
    """Look up the context window for a model.

    Args:
        model: Backend model identifier (e.g., "llama3.2:3b")

    Returns:
        Window size in tokens, or the default for unknown models
    """
    for pattern, window in CONTEXT_WINDOW_TABLE:
        if pattern in model:
            return window

    return DEFAULT_CONTEXT_WINDOW
