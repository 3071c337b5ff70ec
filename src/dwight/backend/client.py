"""HTTP client for the Ollama inference API."""

import json
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import Any

import httpx

from dwight.chat.streaming import consume_lines, parse_chat_response
from dwight.chat.types import ChatResult, ContentDelta
from dwight.errors import BackendUnreachable, PullFailed, RequestFailed

logger = logging.getLogger(__name__)

DEFAULT_HOST = "http://localhost:11434"


@dataclass
class InstalledModel:
    """A registry entry from ``/api/tags``."""

    name: str
    size: int = 0
    modified_at: str = ""


@dataclass
class PullProgress:
    """A progress record from ``/api/pull``."""

    status: str
    completed: int = 0
    total: int = 0


def _error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return f"HTTP {response.status_code}"
    if isinstance(data, dict) and data.get("error"):
        return f"HTTP {response.status_code}: {data['error']}"
    return f"HTTP {response.status_code}"


class OllamaClient:
    """Async client for the backend's registry, pull and chat endpoints."""

    def __init__(self, host: str = DEFAULT_HOST, timeout: float = 180.0):
        """Initialize Ollama client.

        Args:
            host: Ollama server URL
            timeout: Request timeout in seconds (applies to chat requests)
        """
        self.host = host.rstrip("/")
        self.timeout = timeout
        self._client = httpx.AsyncClient(base_url=self.host, timeout=timeout)

    async def list_models_detailed(self) -> list[InstalledModel]:
        """Fetch the registry listing.

        Returns:
            Installed models as reported by ``/api/tags``

        Raises:
            BackendUnreachable: On transport failure
            RequestFailed: On a non-success status or unparsable body
        """
        try:
            response = await self._client.get("/api/tags")
        except httpx.TransportError as e:
            raise BackendUnreachable(f"Failed to connect to Ollama at {self.host}: {e}") from e

        if response.status_code != 200:
            raise RequestFailed(f"Ollama API error: {_error_detail(response)}")

        try:
            data = response.json()
        except json.JSONDecodeError as e:
            raise RequestFailed(f"Failed to decode model listing: {e}") from e

        if not isinstance(data, dict):
            raise RequestFailed("Unexpected model listing format")

        # Entries without a string name cannot be matched against a model
        return [
            InstalledModel(
                name=entry["name"],
                size=entry.get("size") or 0,
                modified_at=entry.get("modified_at") or "",
            )
            for entry in data.get("models") or []
            if isinstance(entry, dict) and isinstance(entry.get("name"), str)
        ]

    async def list_models(self) -> list[str]:
        """Names of installed models (e.g., ["qwen2.5:7b", "llama3.2:3b"])."""
        return [model.name for model in await self.list_models_detailed()]

    async def pull(
        self,
        model: str,
        on_progress: Callable[[PullProgress], None] | None = None,
    ) -> None:
        """Request a model pull and read the progress stream to its end.

        Args:
            model: Model to pull (e.g., "llama3.2:3b")
            on_progress: Optional callback for each progress record

        Raises:
            PullFailed: On transport failure, non-success status or an error record
        """
        try:
            async with self._client.stream(
                "POST",
                "/api/pull",
                json={"name": model},
                timeout=httpx.Timeout(self.timeout, read=None),
            ) as response:
                if response.status_code != 200:
                    await response.aread()
                    raise PullFailed(f"Model pull request failed: {_error_detail(response)}")

                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    try:
                        record = json.loads(line)
                    except json.JSONDecodeError:
                        continue
                    if record.get("error"):
                        raise PullFailed(f"Model pull failed: {record['error']}")
                    if on_progress is not None:
                        on_progress(
                            PullProgress(
                                status=record.get("status", ""),
                                completed=record.get("completed", 0) or 0,
                                total=record.get("total", 0) or 0,
                            )
                        )
        except httpx.TransportError as e:
            raise PullFailed(f"Failed to start model pull: {e}") from e

    async def delete_model(self, model: str) -> None:
        """Remove an installed model.

        Raises:
            RequestFailed: On transport failure or non-success status
        """
        try:
            response = await self._client.request("DELETE", "/api/delete", json={"name": model})
        except httpx.TransportError as e:
            raise RequestFailed(f"Delete request failed: {e}") from e

        if response.status_code != 200:
            raise RequestFailed(f"Failed to delete {model}: {_error_detail(response)}")

    def _chat_payload(
        self,
        model: str,
        messages: list[dict[str, Any]],
        temperature: float,
        stream: bool,
    ) -> dict[str, Any]:
        return {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "options": {"temperature": temperature},
            "stream": stream,
        }

    async def chat(
        self,
        model: str,
        messages: list[dict[str, Any]],
        temperature: float = 0.7,
    ) -> ChatResult:
        """Send a non-streaming chat request.

        Args:
            model: Backend model identifier
            messages: Request messages (see ``assemble_request``)
            temperature: Sampling temperature

        Returns:
            ChatResult with the full reply and token counts

        Raises:
            RequestFailed: On transport failure, non-success status or bad body
        """
        payload = self._chat_payload(model, messages, temperature, stream=False)
        try:
            response = await self._client.post("/api/chat", json=payload)
        except httpx.TransportError as e:
            raise RequestFailed(f"Request failed: {e}") from e

        if response.status_code != 200:
            raise RequestFailed(f"API error: {_error_detail(response)}")

        try:
            body = response.json()
        except json.JSONDecodeError as e:
            raise RequestFailed(f"Failed to parse response: {e}") from e

        return parse_chat_response(body)

    async def stream_chat(
        self,
        model: str,
        messages: list[dict[str, Any]],
        temperature: float = 0.7,
    ) -> AsyncIterator[ContentDelta | ChatResult]:
        """Send a streaming chat request.

        Args:
            model: Backend model identifier
            messages: Request messages (see ``assemble_request``)
            temperature: Sampling temperature

        Yields:
            ContentDelta for each fragment, then one ChatResult

        Raises:
            RequestFailed: On transport failure or non-success status
            StreamTruncated: If the stream ends without a terminal record
        """
        payload = self._chat_payload(model, messages, temperature, stream=True)
        try:
            async with self._client.stream("POST", "/api/chat", json=payload) as response:
                if response.status_code != 200:
                    await response.aread()
                    raise RequestFailed(f"API error: {_error_detail(response)}")

                async for event in consume_lines(response.aiter_lines()):
                    yield event
        except httpx.TransportError as e:
            raise RequestFailed(f"Request failed: {e}") from e

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
