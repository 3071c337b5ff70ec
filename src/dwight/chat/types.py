"""Chat data types shared by the session, context manager and store."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

Role = Literal["user", "assistant"]


@dataclass(frozen=True)
class ModelProfile:
    """A named (model, system prompt, temperature) configuration."""

    name: str
    model: str
    system_prompt: str = ""
    temperature: float = 0.7

    def __post_init__(self) -> None:
        if not 0.0 <= self.temperature <= 1.0:
            raise ValueError(f"temperature must be within 0.0-1.0, got {self.temperature}")


@dataclass
class ChatMessage:
    """One conversational turn."""

    role: Role
    content: str
    timestamp: datetime = field(default_factory=datetime.now)
    duration: float = 0.0  # seconds, zero for user turns
    prompt_tokens: int = 0
    total_tokens: int = 0  # prompt + completion

    @property
    def response_tokens(self) -> int:
        return self.total_tokens - self.prompt_tokens


@dataclass(frozen=True)
class ChatResult:
    """Terminal result of a chat request, streamed or not."""

    content: str
    prompt_tokens: int = 0
    total_tokens: int = 0

    @property
    def response_tokens(self) -> int:
        return self.total_tokens - self.prompt_tokens


@dataclass(frozen=True)
class ContentDelta:
    """An incremental content fragment from a streamed reply."""

    content: str


@dataclass(frozen=True)
class Attachment:
    """Raw text of an attached resource, labelled by its file name."""

    name: str
    text: str


class ProfileSet:
    """Ordered profiles with one current index."""

    def __init__(self, profiles: list[ModelProfile], current: int = 0):
        """Initialize the profile set.

        Args:
            profiles: Ordered profiles; must not be empty
            current: Index of the active profile (clamped into range)
        """
        if not profiles:
            raise ValueError("a profile set needs at least one profile")
        self._profiles = list(profiles)
        self._current = 0
        self.select(min(max(current, 0), len(self._profiles) - 1))

    def __len__(self) -> int:
        return len(self._profiles)

    def __iter__(self):
        return iter(self._profiles)

    def __getitem__(self, index: int) -> ModelProfile:
        return self._profiles[index]

    @property
    def current(self) -> int:
        return self._current

    @property
    def current_profile(self) -> ModelProfile:
        return self._profiles[self._current]

    def select(self, index: int) -> ModelProfile:
        if not 0 <= index < len(self._profiles):
            raise IndexError(f"profile index {index} out of range (0-{len(self._profiles) - 1})")
        self._current = index
        return self._profiles[index]

    def next(self) -> ModelProfile:
        return self.select((self._current + 1) % len(self._profiles))

    def previous(self) -> ModelProfile:
        return self.select((self._current - 1) % len(self._profiles))
