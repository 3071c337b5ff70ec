"""Chat session state machine.

The session is owned by a single event loop. Operations that need the
network or attached files do not perform I/O themselves: they switch
state and return an ``Effect``, an async worker that reports back through
events. The driver spawns effects and feeds their events to ``ChatSession.apply`` in order.
"""

import asyncio
import copy
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from dwight.backend.availability import AvailabilityController
from dwight.backend.client import OllamaClient
from dwight.chat.context import assemble_request, trim_to_context
from dwight.chat.states import (
    BUSY_STATES,
    ChatState,
    CheckingModel,
    Event,
    Failed,
    Init,
    ModelChecked,
    ModelNotAvailable,
    OperationFailed,
    PullingModel,
    PullSucceeded,
    Ready,
    ResponseReceived,
    Sending,
    Streaming,
)
from dwight.chat.types import Attachment, ChatMessage, ChatResult, ContentDelta, ModelProfile, ProfileSet
from dwight.errors import DwightError, InvalidTransition, ValidationError
from dwight.storage.conversations import ConversationStore
from dwight.storage.schema import Conversation, conversation_title, new_conversation_id

logger = logging.getLogger(__name__)

Emit = Callable[[Event], None]


@dataclass(frozen=True)
class Effect:
    """Async work spawned on behalf of the session.

    ``epoch`` identifies the session state that issued it; events tagged
    with an older epoch are discarded.
    """

    epoch: int
    run: Callable[[Emit], Awaitable[None]]


def read_file_bytes(path: Path) -> bytes:
    return path.read_bytes()


class ChatSession:
    """State machine for one chat session."""

    def __init__(
        self,
        profiles: ProfileSet,
        client: OllamaClient,
        availability: AvailabilityController,
        stream: bool = True,
        preamble: str = "",
        read_file: Callable[[Path], bytes] = read_file_bytes,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the session.

        Args:
            profiles: Available profiles; the current one drives requests
            client: Backend client used for chat requests
            availability: Model availability and pull controller
            stream: Use streamed replies (``Streaming``) or single bodies (``Sending``)
            preamble: Global prompt placed before every profile's system prompt
            read_file: Reads an attached resource's bytes
            clock: Monotonic time source for response durations
        """
        self.profiles = profiles
        self.client = client
        self.availability = availability
        self.stream = stream
        self.preamble = preamble
        self._read_file = read_file
        self._clock = clock

        self.state: ChatState = Init()
        self.messages: list[ChatMessage] = []
        self.attached: list[str] = []
        self.conversation: Conversation | None = None
        self.closed = False
        self.epoch = 0

    @property
    def profile(self) -> ModelProfile:
        return self.profiles.current_profile

    @property
    def busy(self) -> bool:
        return isinstance(self.state, BUSY_STATES)

    @property
    def last_error(self) -> str | None:
        return self.state.message if isinstance(self.state, Failed) else None

    @property
    def partial_text(self) -> str:
        """Reply text received so far while streaming."""
        return self.state.text if isinstance(self.state, Streaming) else ""

    def _require(self, states: type | tuple[type, ...], action: str) -> None:
        if self.closed:
            raise InvalidTransition(f"Cannot {action}: session is closed")
        if not isinstance(self.state, states):
            raise InvalidTransition(f"Cannot {action} while {type(self.state).__name__}")

    def _transition(self, state: ChatState) -> None:
        logger.debug("Session state %s -> %s", type(self.state).__name__, type(state).__name__)
        self.state = state

    def _effect(self, run: Callable[[Emit], Awaitable[None]]) -> Effect:
        self.epoch += 1
        return Effect(epoch=self.epoch, run=run)

    # User-initiated transitions

    def open(self) -> Effect:
        """Start the session: check the backend and the current model."""
        self._require(Init, "open session")
        return self._start_check()

    def retry(self) -> Effect:
        """Recover from an error by checking the model again."""
        self._require(Failed, "retry")
        return self._start_check()

    def _start_check(self) -> Effect:
        model = self.profile.model
        self._transition(CheckingModel(model))
        return self._effect(lambda emit: self._run_check(model, emit))

    def confirm_pull(self) -> Effect:
        """User agreed to pull the missing model."""
        self._require(ModelNotAvailable, "pull model")
        model = self.state.model
        self._transition(PullingModel(model))
        return self._effect(lambda emit: self._run_pull(model, emit))

    def decline_pull(self) -> None:
        """User declined the pull; the session is abandoned."""
        self._require(ModelNotAvailable, "decline pull")
        self.close()

    def close(self) -> None:
        """Abandon the session. Results of outstanding work are discarded."""
        self.closed = True
        self.epoch += 1

    def submit(self, text: str) -> Effect:
        """Send a user turn.

        Args:
            text: Raw user input; surrounding whitespace is stripped

        Returns:
            Effect that performs the chat request

        Raises:
            ValidationError: If the text is empty after stripping
            InvalidTransition: If the session is not Ready
        """
        self._require(Ready, "send a message")
        text = text.strip()
        if not text:
            raise ValidationError("Message is empty")

        profile = self.profile
        history = trim_to_context(self.messages, profile.model)
        attached = list(self.attached)

        self.messages.append(ChatMessage(role="user", content=text))

        started_at = self._clock()
        if self.stream:
            self._transition(Streaming(started_at=started_at))
        else:
            self._transition(Sending(started_at=started_at))

        stream = self.stream
        return self._effect(
            lambda emit: self._run_chat(profile, history, text, attached, stream, emit)
        )

    def switch_profile(self, index: int) -> ModelProfile:
        """Make another profile current. History is left unchanged."""
        self._require(Ready, "switch profile")
        return self.profiles.select(index)

    def next_profile(self) -> ModelProfile:
        self._require(Ready, "switch profile")
        return self.profiles.next()

    def previous_profile(self) -> ModelProfile:
        self._require(Ready, "switch profile")
        return self.profiles.previous()

    # Event reducer

    def apply(self, event: Event, epoch: int | None = None) -> Effect | None:
        """Apply a worker event.

        Args:
            event: Event emitted by an effect
            epoch: Epoch of the effect that emitted it (None skips the check)

        Returns:
            A follow-up effect, if the transition needs one
        """
        if self.closed or (epoch is not None and epoch != self.epoch):
            logger.debug("Discarding stale event %s", type(event).__name__)
            return None

        state = self.state

        if isinstance(event, OperationFailed):
            if isinstance(state, BUSY_STATES):
                self._transition(Failed(event.message))
            return None

        if isinstance(state, CheckingModel) and isinstance(event, ModelChecked):
            if event.present:
                self._transition(Ready())
            else:
                self._transition(ModelNotAvailable(event.model))
        elif isinstance(state, PullingModel) and isinstance(event, PullSucceeded):
            self._transition(Ready())
        elif isinstance(state, Streaming) and isinstance(event, ContentDelta):
            state.buffer.append(event.content)
        elif isinstance(state, (Streaming, Sending)) and isinstance(event, ResponseReceived):
            self._finish_response(state, event.result)
        else:
            logger.warning(
                "Ignoring %s in state %s", type(event).__name__, type(state).__name__
            )

        return None

    def _finish_response(self, state: Streaming | Sending, result: ChatResult) -> None:
        self.messages.append(
            ChatMessage(
                role="assistant",
                content=result.content,
                timestamp=datetime.now(),
                duration=max(0.0, self._clock() - state.started_at),
                prompt_tokens=result.prompt_tokens,
                total_tokens=result.total_tokens,
            )
        )
        self._transition(Ready())

    # Workers

    async def _run_check(self, model: str, emit: Emit) -> None:
        try:
            await self.availability.ensure_backend_reachable()
            present = await self.availability.is_model_present(model)
        except DwightError as e:
            emit(OperationFailed(f"Failed to ensure model availability: {e}"))
            return
        except Exception as e:
            logger.exception("Unexpected error checking model %s", model)
            emit(OperationFailed(f"Unexpected error: {e}"))
            return
        emit(ModelChecked(model=model, present=present))

    async def _run_pull(self, model: str, emit: Emit) -> None:
        try:
            await self.availability.pull_model(model)
        except DwightError as e:
            emit(OperationFailed(str(e)))
            return
        except Exception as e:
            logger.exception("Unexpected error pulling model %s", model)
            emit(OperationFailed(f"Unexpected error: {e}"))
            return
        emit(PullSucceeded(model))

    async def _run_chat(
        self,
        profile: ModelProfile,
        history: list[ChatMessage],
        text: str,
        attached: list[str],
        stream: bool,
        emit: Emit,
    ) -> None:
        try:
            attachments = await asyncio.to_thread(self._read_attachments, attached)
            request = assemble_request(history, text, profile, attachments, self.preamble)
            if stream:
                async for event in self.client.stream_chat(
                    profile.model, request, temperature=profile.temperature
                ):
                    if isinstance(event, ChatResult):
                        emit(ResponseReceived(event))
                    else:
                        emit(event)
            else:
                result = await self.client.chat(
                    profile.model, request, temperature=profile.temperature
                )
                emit(ResponseReceived(result))
        except DwightError as e:
            emit(OperationFailed(str(e)))
        except Exception as e:
            logger.exception("Unexpected error during chat request")
            emit(OperationFailed(f"Unexpected error: {e}"))

    # Attachments

    def attach(self, path: str | Path) -> bool:
        """Attach a resource whose contents are injected as context.

        Returns:
            False if the path was already attached
        """
        key = str(path)
        if key in self.attached:
            return False
        self.attached.append(key)
        return True

    def detach(self, path: str | Path) -> bool:
        key = str(path)
        if key not in self.attached:
            return False
        self.attached.remove(key)
        return True

    def clear_attachments(self) -> None:
        self.attached = []

    def _read_attachments(self, entries: list[str]) -> list[Attachment]:
        attachments = []
        for entry in entries:
            path = Path(entry)
            try:
                data = self._read_file(path)
            except OSError as e:
                logger.warning("Skipping attached resource %s: %s", entry, e)
                continue
            attachments.append(Attachment(name=path.name, text=data.decode("utf-8", errors="replace")))
        return attachments

    # History and persistence

    def trim_history(self) -> int:
        """Trim the in-memory history to the current model's budget.

        Returns:
            Number of messages dropped
        """
        if self.busy:
            raise InvalidTransition("Cannot trim history while a request is in flight")
        before = len(self.messages)
        self.messages = trim_to_context(self.messages, self.profile.model)
        return before - len(self.messages)

    def new_conversation(self) -> None:
        """Start over with an empty, unsaved conversation."""
        self._require(Ready, "start a new conversation")
        self.messages = []
        self.attached = []
        self.conversation = None

    def load_conversation(self, conversation: Conversation) -> None:
        """Adopt a stored conversation's messages and attachments."""
        if self.busy:
            raise InvalidTransition("Cannot load a conversation while a request is in flight")

        self.conversation = conversation
        self.messages = copy.deepcopy(conversation.messages)
        self.attached = list(conversation.attached_resources)

        for index, profile in enumerate(self.profiles):
            if profile.name == conversation.profile_name:
                self.profiles.select(index)
                break

    def save(self, store: ConversationStore) -> Conversation:
        """Create or update the stored conversation for this session.

        Raises:
            ValidationError: If there is nothing to save
            PersistenceError: If the store fails; session state is unchanged
        """
        if not self.messages:
            raise ValidationError("No messages to save")

        if self.conversation is None:
            profile = self.profile
            now = datetime.now()
            self.conversation = Conversation(
                id=new_conversation_id(),
                title=conversation_title(self.messages),
                model=profile.model,
                profile_name=profile.name,
                created=now,
                last_modified=now,
            )

        self.conversation.messages = copy.deepcopy(self.messages)
        self.conversation.attached_resources = list(self.attached)
        store.save(self.conversation)
        return self.conversation
