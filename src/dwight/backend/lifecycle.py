"""Backend lifecycle collaborator.

Starting and stopping the process or container that hosts the inference
server is handled outside dwight. The chat engine only needs the contract
below; ``HttpProbeLifecycle`` is the default, which waits for an already
running server to answer.
"""

import asyncio
import logging
from typing import Protocol

import httpx

from dwight.errors import BackendUnreachable

logger = logging.getLogger(__name__)


class BackendLifecycle(Protocol):
    """Protocol for backend supervisors."""

    async def ensure_running(self) -> None:
        """Make the backend reachable or raise ``BackendUnreachable``."""
        ...

    async def stop(self) -> None:
        """Release the backend (e.g., stop its container)."""
        ...


class HttpProbeLifecycle:
    """Lifecycle that only checks the server answers on ``/api/tags``."""

    def __init__(
        self,
        host: str = "http://localhost:11434",
        attempts: int = 3,
        delay: float = 1.0,
        timeout: float = 5.0,
    ):
        """Initialize the probe.

        Args:
            host: Ollama server URL
            attempts: Number of probes before giving up
            delay: Seconds to wait between probes
            timeout: Per-probe timeout in seconds
        """
        self.host = host.rstrip("/")
        self.attempts = max(1, attempts)
        self.delay = delay
        self.timeout = timeout

    async def ensure_running(self) -> None:
        last_error = "no response"
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for attempt in range(1, self.attempts + 1):
                try:
                    response = await client.get(f"{self.host}/api/tags")
                    if response.status_code == 200:
                        return
                    last_error = f"HTTP {response.status_code}"
                except httpx.TransportError as e:
                    last_error = str(e) or type(e).__name__

                logger.debug("Backend probe %d/%d failed: %s", attempt, self.attempts, last_error)
                if attempt < self.attempts:
                    await asyncio.sleep(self.delay)

        raise BackendUnreachable(f"Ollama is not reachable at {self.host} ({last_error})")

    async def stop(self) -> None:
        return None
