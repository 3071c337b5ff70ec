"""Model availability checks and the pull-and-poll procedure."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from dwight.backend.client import OllamaClient, PullProgress
from dwight.backend.lifecycle import BackendLifecycle
from dwight.errors import BackendError, BackendUnreachable, PullError, PullFailed, PullTimeout

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 10.0  # seconds
DEFAULT_PULL_TIMEOUT = 600.0  # seconds


def model_present(model: str, installed: list[str]) -> bool:
    """True if any installed name starts with ``model`` (case-sensitive).

    A bare name matches any tagged variant: ``llama3.2`` matches
    ``llama3.2:3b``.
    """
    return any(name.startswith(model) for name in installed)


class AvailabilityController:
    """Queries the backend registry and drives model pulls."""

    def __init__(
        self,
        client: OllamaClient,
        lifecycle: BackendLifecycle,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        pull_timeout: float = DEFAULT_PULL_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the controller.

        Args:
            client: Backend HTTP client
            lifecycle: Collaborator that brings the backend up
            poll_interval: Seconds between registry polls during a pull
            pull_timeout: Overall pull deadline in seconds
            clock: Monotonic time source
            sleep: Async sleep used between polls
        """
        self.client = client
        self.lifecycle = lifecycle
        self.poll_interval = poll_interval
        self.pull_timeout = pull_timeout
        self._clock = clock
        self._sleep = sleep

    async def ensure_backend_reachable(self) -> None:
        """Delegate to the lifecycle collaborator.

        Raises:
            BackendUnreachable: If the backend cannot be brought up
        """
        try:
            await self.lifecycle.ensure_running()
        except BackendUnreachable:
            raise
        except Exception as e:
            raise BackendUnreachable(f"Failed to start backend: {e}") from e

    async def is_model_present(self, model: str) -> bool:
        """Check the registry listing for ``model``.

        Raises:
            BackendError: If the listing cannot be fetched
        """
        installed = await self.client.list_models()
        return model_present(model, installed)

    async def pull_model(
        self,
        model: str,
        on_progress: Callable[[PullProgress], None] | None = None,
    ) -> None:
        """Pull ``model`` and wait until the registry lists it.

        Args:
            model: Model to pull
            on_progress: Optional callback for pull-progress records

        Raises:
            PullFailed: If the pull request is rejected or cannot be sent
            PullTimeout: If the model does not appear before the deadline
        """
        deadline = self._clock() + self.pull_timeout
        logger.info("Pulling model %s", model)

        try:
            await asyncio.wait_for(
                self.client.pull(model, on_progress=on_progress),
                timeout=self.pull_timeout,
            )
        except TimeoutError as e:
            raise PullTimeout(
                f"Model pull timed out after {self.pull_timeout:.0f}s"
            ) from e
        except PullError:
            raise
        except BackendError as e:
            raise PullFailed(str(e)) from e

        while self._clock() < deadline:
            try:
                if await self.is_model_present(model):
                    logger.info("Model %s is ready", model)
                    return
            except BackendError as e:
                logger.warning("Registry poll failed while pulling %s: %s", model, e)

            await self._sleep(self.poll_interval)

        raise PullTimeout(f"Model pull timed out after {self.pull_timeout:.0f}s")
