"""Ollama backend client and model availability."""

from .availability import AvailabilityController
from .client import InstalledModel, OllamaClient, PullProgress
from .lifecycle import BackendLifecycle, HttpProbeLifecycle

__all__ = [
    "AvailabilityController",
    "BackendLifecycle",
    "HttpProbeLifecycle",
    "InstalledModel",
    "OllamaClient",
    "PullProgress",
]
