"""Fixtures and fakes for testing the Eris relay."""

import asyncio
import json
import logging
import socket

import pytest

from eris.lib import config
from eris.lib.models import Episode, Movie, PlaybackStatus, Role, Season, Show


def get_free_port() -> int:
    """Get a free port number.

    :return: Available port number.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("", 0))
        s.listen(1)
        port: int = s.getsockname()[1]
        return port


async def wait_for(predicate, timeout: float = 2.0, interval: float = 0.01):
    """Poll *predicate* until it is truthy or *timeout* seconds pass."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(interval)


def make_status(elapsed: float = 0.0, **overrides) -> PlaybackStatus:
    fields = {
        "duration": 3600.0,
        "elapsed": elapsed,
        "is_playing": True,
        "volume": 80,
        "metadata": Movie(title="Harbour Lights", synopsis="A ferry that never docks."),
    }
    fields.update(overrides)
    return PlaybackStatus(**fields)


def make_show_status(**overrides) -> PlaybackStatus:
    metadata = Show(
        title="Lighthouse Keepers",
        artwork="art.jpg",
        episode=Episode(seq=3, title="Low Tide", thumbs=[], stills=[], synopsis="Fog."),
        season=Season(),
    )
    return make_status(metadata=metadata, **overrides)


class FakeSocket:
    """Stands in for an aiohttp WebSocketResponse on the hub side."""

    def __init__(self, *, delay: float = 0.0, fail: bool = False):
        self.delay = delay
        self.fail = fail
        self.frames: list[str] = []
        self.closed = False

    async def send_str(self, frame: str):
        if self.fail:
            raise ConnectionResetError("socket is gone")
        if self.delay:
            await asyncio.sleep(self.delay)
        self.frames.append(frame)

    async def close(self, **kwargs):
        self.closed = True

    def messages(self) -> list[dict]:
        return [json.loads(f) for f in self.frames]


class FakeLink:
    """Stands in for HubLink on the agent/controller side.

    ``connect_results`` is consumed one entry per connect attempt; once it is
    empty every attempt succeeds.
    """

    def __init__(self, role: Role = Role.AGENT, *, connected: bool = False,
                 connect_results: list[bool] | None = None):
        self.url = "ws://hub.test/ws"
        self.role = role
        self.connect_attempts = 0
        self.connect_results = list(connect_results or [])
        self.sent: list[tuple[float, str]] = []
        self.inbound: asyncio.Queue = asyncio.Queue()
        self._connected = connected
        self._up = asyncio.Event()
        if connected:
            self._up.set()

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> bool:
        if self._connected:
            return True
        self.connect_attempts += 1
        ok = self.connect_results.pop(0) if self.connect_results else True
        if ok:
            self._connected = True
            self._up.set()
        return ok

    def drop(self):
        self._connected = False
        self._up.clear()
        self.inbound.put_nowait(None)

    async def wait_connected(self):
        await self._up.wait()

    async def send(self, message: str) -> bool:
        if not self._connected:
            return False
        self.sent.append((asyncio.get_running_loop().time(), message))
        return True

    async def receive(self):
        return await self.inbound.get()

    async def close(self):
        self._connected = False
        self._up.clear()

    def sent_messages(self) -> list[dict]:
        return [json.loads(frame) for _, frame in self.sent]


@pytest.fixture(name="caplog")
def caplog_fixture(caplog: pytest.LogCaptureFixture) -> pytest.LogCaptureFixture:
    """Set log level to debug for tests using the caplog fixture."""
    caplog.set_level(logging.DEBUG)
    return caplog


@pytest.fixture(autouse=True)
def empty_config(monkeypatch, tmp_path):
    """Run every test against an empty config, never the machine's own."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("ERIS_CONFIG", raising=False)
    monkeypatch.setattr(config, "_config", {})
