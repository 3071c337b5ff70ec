"""Chat session states and the worker events that move between them.

Each state carries only the data relevant to it. ``Ready`` and ``Failed``
are stable; every other state resolves through an event produced by a
worker task.
"""

from dataclasses import dataclass, field

from dwight.chat.types import ChatResult, ContentDelta


@dataclass(frozen=True)
class Init:
    """Session created, model not yet checked."""


@dataclass(frozen=True)
class CheckingModel:
    """Waiting for the backend reachability and registry check."""

    model: str


@dataclass(frozen=True)
class ModelNotAvailable:
    """Requested model is not installed; awaiting the user's decision."""

    model: str


@dataclass(frozen=True)
class PullingModel:
    """Pull-and-poll in progress."""

    model: str


@dataclass(frozen=True)
class Ready:
    """Idle and accepting user input."""


@dataclass
class Streaming:
    """Streamed reply in flight; fragments accumulate in ``buffer``."""

    started_at: float
    buffer: list[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(self.buffer)


@dataclass(frozen=True)
class Sending:
    """Non-streaming request in flight."""

    started_at: float


@dataclass(frozen=True)
class Failed:
    """Last operation failed; only retry or abandon are offered."""

    message: str


ChatState = Init | CheckingModel | ModelNotAvailable | PullingModel | Ready | Streaming | Sending | Failed

BUSY_STATES = (CheckingModel, PullingModel, Streaming, Sending)


@dataclass(frozen=True)
class ModelChecked:
    """Registry check finished."""

    model: str
    present: bool


@dataclass(frozen=True)
class PullSucceeded:
    """Pulled model now appears in the registry."""

    model: str


@dataclass(frozen=True)
class ResponseReceived:
    """Terminal record (or full body) of a chat request."""

    result: ChatResult


@dataclass(frozen=True)
class OperationFailed:
    """A worker task failed; ``message`` is shown to the user."""

    message: str


Event = ModelChecked | PullSucceeded | ContentDelta | ResponseReceived | OperationFailed


def state_label(state: ChatState) -> str:
    """Short human-readable name for a state."""
    labels = {
        Init: "initializing",
        CheckingModel: "checking model",
        ModelNotAvailable: "model not available",
        PullingModel: "pulling model",
        Ready: "ready",
        Streaming: "streaming",
        Sending: "waiting for response",
        Failed: "error",
    }
    return labels[type(state)]
