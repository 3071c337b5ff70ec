"""Tests for model availability and the pull-and-poll procedure."""

import asyncio

import pytest
import respx
from httpx import Response

from dwight.backend.availability import AvailabilityController, model_present
from dwight.backend.client import OllamaClient
from dwight.errors import BackendUnreachable, PullFailed, PullTimeout, RequestFailed


class FakeClock:
    """Monotonic clock advanced only by the fake sleep."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeClient:
    """Registry whose listings are scripted per call."""

    def __init__(self, listings, pull_error: Exception | None = None):
        self.listings = list(listings)
        self.pull_error = pull_error
        self.pulled: list[str] = []

    async def list_models(self) -> list[str]:
        listing = self.listings.pop(0) if len(self.listings) > 1 else self.listings[0]
        if isinstance(listing, Exception):
            raise listing
        return listing

    async def pull(self, model, on_progress=None):
        self.pulled.append(model)
        if self.pull_error is not None:
            raise self.pull_error


def _controller(client, lifecycle, clock, pull_timeout=600.0):
    return AvailabilityController(
        client,
        lifecycle,
        poll_interval=10.0,
        pull_timeout=pull_timeout,
        clock=clock,
        sleep=clock.sleep,
    )


def test_model_present_prefix_match():
    installed = ["llama3.2:3b", "qwen2.5-coder:7b"]

    assert model_present("llama3.2:3b", installed)
    assert model_present("llama3.2", installed)
    assert not model_present("mistral", installed)
    assert not model_present("Llama3.2", installed)
    assert not model_present("llama3.2:3b", [])


@pytest.mark.asyncio
async def test_is_model_present(lifecycle):
    controller = _controller(FakeClient([["llama3.2:3b"]]), lifecycle, FakeClock())

    assert await controller.is_model_present("llama3.2:3b")
    assert not await controller.is_model_present("mistral:7b")


@pytest.mark.asyncio
async def test_ensure_backend_reachable_delegates(lifecycle):
    controller = _controller(FakeClient([[]]), lifecycle, FakeClock())

    await controller.ensure_backend_reachable()

    assert lifecycle.calls == 1


@pytest.mark.asyncio
async def test_ensure_backend_reachable_wraps_errors(lifecycle):
    lifecycle.error = RuntimeError("docker not installed")
    controller = _controller(FakeClient([[]]), lifecycle, FakeClock())

    with pytest.raises(BackendUnreachable, match="docker not installed"):
        await controller.ensure_backend_reachable()


@pytest.mark.asyncio
async def test_pull_polls_until_listed(lifecycle):
    """Test that the registry is polled until the model appears."""
    client = FakeClient([[], [], ["llama3.2:3b"]])
    clock = FakeClock()
    controller = _controller(client, lifecycle, clock)

    await controller.pull_model("llama3.2:3b")

    assert client.pulled == ["llama3.2:3b"]
    assert clock.sleeps == [10.0, 10.0]


@pytest.mark.asyncio
async def test_pull_tolerates_failed_polls(lifecycle):
    client = FakeClient([RequestFailed("busy"), ["llama3.2:3b"]])
    clock = FakeClock()
    controller = _controller(client, lifecycle, clock)

    await controller.pull_model("llama3.2:3b")

    assert clock.sleeps == [10.0]


@pytest.mark.asyncio
@respx.mock
async def test_pull_polls_past_nameless_listing_entries(lifecycle):
    host = "http://localhost:11434"
    respx.post(f"{host}/api/pull").mock(
        return_value=Response(200, text='{"status": "success"}\n')
    )
    respx.get(f"{host}/api/tags").mock(
        side_effect=[
            Response(200, json={"models": [{"name": None}]}),
            Response(200, json={"models": [{"name": None}, {"name": "llama3.2:3b"}]}),
        ]
    )
    clock = FakeClock()

    async with OllamaClient(host=host) as client:
        await _controller(client, lifecycle, clock).pull_model("llama3.2:3b")

    assert clock.sleeps == [10.0]


@pytest.mark.asyncio
async def test_pull_times_out(lifecycle):
    """Test that PullTimeout is raised once the deadline passes."""
    clock = FakeClock()
    controller = _controller(FakeClient([[]]), lifecycle, clock, pull_timeout=35.0)

    with pytest.raises(PullTimeout):
        await controller.pull_model("llama3.2:3b")

    assert clock.now >= 35.0
    assert len(clock.sleeps) == 4


@pytest.mark.asyncio
async def test_pull_rejected(lifecycle):
    client = FakeClient([[]], pull_error=PullFailed("manifest unknown"))
    clock = FakeClock()
    controller = _controller(client, lifecycle, clock)

    with pytest.raises(PullFailed, match="manifest unknown"):
        await controller.pull_model("nope")

    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_pull_backend_error_becomes_pull_failed(lifecycle):
    client = FakeClient([[]], pull_error=BackendUnreachable("refused"))
    controller = _controller(client, lifecycle, FakeClock())

    with pytest.raises(PullFailed, match="refused"):
        await controller.pull_model("llama3.2:3b")


@pytest.mark.asyncio
async def test_slow_pull_request_times_out(lifecycle):
    class HangingClient(FakeClient):
        async def pull(self, model, on_progress=None):
            await asyncio.sleep(10)

    controller = _controller(HangingClient([[]]), lifecycle, FakeClock(), pull_timeout=0.01)

    with pytest.raises(PullTimeout):
        await controller.pull_model("llama3.2:3b")
