"""Pytest configuration and shared fixtures."""

import pytest

from dwight.chat.types import ModelProfile, ProfileSet
from dwight.config.schema import DwightConfig

OLLAMA_HOST = "http://localhost:11434"


class FakeLifecycle:
    """Lifecycle collaborator that never touches the network."""

    def __init__(self, error: Exception | None = None):
        self.error = error
        self.calls = 0

    async def ensure_running(self) -> None:
        self.calls += 1
        if self.error is not None:
            raise self.error

    async def stop(self) -> None:
        return None


@pytest.fixture
def default_config() -> DwightConfig:
    """Provide a default configuration for tests."""
    return DwightConfig()


@pytest.fixture
def lifecycle() -> FakeLifecycle:
    return FakeLifecycle()


@pytest.fixture
def profiles() -> ProfileSet:
    """Two profiles on different models."""
    return ProfileSet(
        [
            ModelProfile(
                name="General Assistant",
                model="llama3.2:3b",
                system_prompt="You are a helpful AI assistant.",
                temperature=0.8,
            ),
            ModelProfile(
                name="Coder Assistant",
                model="qwen2.5-coder:7b",
                system_prompt="You write code.",
                temperature=0.7,
            ),
        ]
    )
