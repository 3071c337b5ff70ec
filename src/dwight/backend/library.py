"""Curated catalogue of models that can be pulled from the Ollama library."""

from dataclasses import dataclass, field

from dwight.backend.availability import model_present


@dataclass(frozen=True)
class LibraryModel:
    """A pullable model with a short description and download size."""

    name: str
    description: str
    size: str
    tags: tuple[str, ...] = field(default_factory=tuple)


POPULAR_MODELS = [
    LibraryModel(
        "llama3.2:3b",
        "Meta's Llama 3.2 - Fast, capable model (3B params)",
        "2.0GB",
        ("general", "chat", "code"),
    ),
    LibraryModel(
        "llama3.2:1b",
        "Meta's Llama 3.2 - Ultra-fast lightweight (1B params)",
        "1.3GB",
        ("general", "chat"),
    ),
    LibraryModel(
        "qwen2.5-coder:7b",
        "Alibaba's Qwen 2.5 Coder - Excellent for coding (7B params)",
        "4.7GB",
        ("code", "programming"),
    ),
    LibraryModel(
        "qwen2.5-coder:14b",
        "Alibaba's Qwen 2.5 Coder - Advanced coding (14B params)",
        "9.0GB",
        ("code", "programming"),
    ),
    LibraryModel(
        "phi3:3.8b",
        "Microsoft Phi-3 - Small but powerful (3.8B params)",
        "2.3GB",
        ("general", "chat"),
    ),
    LibraryModel(
        "gemma2:2b",
        "Google Gemma 2 - Efficient and fast (2B params)",
        "1.6GB",
        ("general", "chat"),
    ),
    LibraryModel(
        "mistral:7b",
        "Mistral AI - Balanced performance (7B params)",
        "4.1GB",
        ("general", "chat", "code"),
    ),
    LibraryModel(
        "llama3.1:8b",
        "Meta's Llama 3.1 - Strong general model (8B params)",
        "4.7GB",
        ("general", "chat", "reasoning"),
    ),
    LibraryModel(
        "codellama:7b",
        "Meta's Code Llama - Specialized for coding (7B params)",
        "3.8GB",
        ("code", "programming"),
    ),
    LibraryModel(
        "deepseek-coder:6.7b",
        "DeepSeek Coder - Advanced code generation (6.7B params)",
        "3.8GB",
        ("code", "programming"),
    ),
    LibraryModel(
        "llava:7b",
        "LLaVA - Vision + language model (7B params)",
        "4.5GB",
        ("vision", "multimodal"),
    ),
    LibraryModel(
        "neural-chat:7b",
        "Intel's Neural Chat - Optimized for conversation (7B params)",
        "4.1GB",
        ("chat", "conversation"),
    ),
]


def library_models(tag: str | None = None) -> list[LibraryModel]:
    """Catalogue entries, optionally only those carrying ``tag``."""
    if tag is None:
        return list(POPULAR_MODELS)
    tag = tag.lower()
    return [model for model in POPULAR_MODELS if tag in model.tags]


def with_install_status(
    models: list[LibraryModel],
    installed: list[str],
) -> list[tuple[LibraryModel, bool]]:
    """Pair each catalogue entry with whether the backend already has it."""
    return [(model, model_present(model.name, installed)) for model in models]
