"""Runs session effects as tasks and applies their events in order."""

import asyncio
import logging
from collections.abc import Callable

from dwight.chat.session import ChatSession, Effect
from dwight.chat.states import ChatState, Event

logger = logging.getLogger(__name__)


class SessionDriver:
    """Single-loop owner of a session.

    Effects run on worker tasks and only enqueue events; the session is
    mutated exclusively from ``step``/``settle`` on the owning loop.
    """

    def __init__(
        self,
        session: ChatSession,
        on_event: Callable[[Event, ChatState], None] | None = None,
    ):
        """Initialize the driver.

        Args:
            session: Session to drive
            on_event: Called after each event is applied, with the new state
        """
        self.session = session
        self.on_event = on_event
        self._queue: asyncio.Queue[tuple[int, Event]] = asyncio.Queue()
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        """True while a worker is running or events are queued."""
        return bool(self._tasks) or not self._queue.empty()

    def dispatch(self, effect: Effect | None) -> None:
        """Spawn an effect on a worker task."""
        if effect is None:
            return

        def emit(event: Event) -> None:
            self._queue.put_nowait((effect.epoch, event))

        task = asyncio.get_running_loop().create_task(effect.run(emit))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _apply(self, epoch: int, event: Event) -> None:
        follow_up = self.session.apply(event, epoch)
        self.dispatch(follow_up)
        if self.on_event is not None:
            self.on_event(event, self.session.state)

    async def step(self) -> Event:
        """Wait for the next event and apply it."""
        epoch, event = await self._queue.get()
        self._apply(epoch, event)
        return event

    async def settle(self) -> ChatState:
        """Apply events until no worker is running and the queue is empty.

        Returns:
            The session state once everything outstanding has resolved
        """
        while self.pending:
            if not self._queue.empty():
                self._apply(*self._queue.get_nowait())
                continue

            getter = asyncio.ensure_future(self._queue.get())
            await asyncio.wait({getter, *self._tasks}, return_when=asyncio.FIRST_COMPLETED)
            if getter.done():
                self._apply(*getter.result())
            else:
                getter.cancel()

        return self.session.state

    async def run(self, effect: Effect | None) -> ChatState:
        """Dispatch an effect and wait for the session to settle."""
        self.dispatch(effect)
        return await self.settle()

    async def drain(self) -> None:
        """Wait for outstanding workers without applying their events."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        while not self._queue.empty():
            self._queue.get_nowait()
