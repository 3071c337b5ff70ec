"""Pydantic models for dwight.yaml configuration."""

from typing import Literal

from pydantic import BaseModel, Field, model_validator

from dwight.chat.types import ModelProfile, ProfileSet
from dwight.config.defaults import DEFAULT_PROFILES


class OllamaConfig(BaseModel):
    """Ollama server configuration."""

    host: str = Field(default="http://localhost:11434", description="Ollama server URL")
    timeout: int = Field(default=180, description="Chat request timeout in seconds", ge=1)
    pull_timeout: int = Field(
        default=600,
        description="Overall deadline for pulling a model, in seconds",
        ge=1,
    )
    poll_interval: float = Field(
        default=10.0,
        description="Seconds between registry polls while a model is pulling",
        gt=0,
    )


class ChatConfig(BaseModel):
    """Chat session behaviour."""

    stream: bool = Field(default=True, description="Stream replies as they are generated")
    main_prompt: str = Field(
        default="",
        description="Global prompt placed before every profile's system prompt",
    )
    user_name: str = Field(default="User", description="Name shown for user turns")


class ProfileConfig(BaseModel):
    """A named model profile."""

    name: str = Field(description="Display name")
    model: str = Field(description="Backend model identifier (e.g., 'llama3.2:3b')")
    system_prompt: str = Field(default="", description="System prompt for this profile")
    temperature: float = Field(default=0.7, description="Sampling temperature", ge=0.0, le=1.0)

    def to_profile(self) -> ModelProfile:
        return ModelProfile(
            name=self.name,
            model=self.model,
            system_prompt=self.system_prompt,
            temperature=self.temperature,
        )


def _default_profiles() -> list[ProfileConfig]:
    return [
        ProfileConfig(
            name=p.name,
            model=p.model,
            system_prompt=p.system_prompt,
            temperature=p.temperature,
        )
        for p in DEFAULT_PROFILES
    ]


class StorageConfig(BaseModel):
    """Where conversations and exports are written."""

    conversations_dir: str = Field(
        default="~/.dwight/conversations",
        description="Directory holding one JSON file per conversation",
    )
    exports_dir: str = Field(
        default="~/.dwight/exports",
        description="Directory where exported conversations are written",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Root log level",
    )


class DwightConfig(BaseModel):
    """Root configuration schema for dwight."""

    ollama: OllamaConfig = Field(default_factory=OllamaConfig)
    chat: ChatConfig = Field(default_factory=ChatConfig)
    profiles: list[ProfileConfig] = Field(default_factory=_default_profiles)
    current_profile: int = Field(default=0, description="Index of the active profile", ge=0)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def _fallback_profiles(self) -> "DwightConfig":
        if not self.profiles:
            self.profiles = _default_profiles()
        if self.current_profile >= len(self.profiles):
            self.current_profile = len(self.profiles) - 1
        return self

    def profile_set(self) -> ProfileSet:
        """Build the ordered profile set with the configured current index."""
        return ProfileSet([p.to_profile() for p in self.profiles], self.current_profile)
