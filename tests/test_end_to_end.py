"""Hub, agent and controller talking over real WebSockets."""

import asyncio
import contextlib
from collections.abc import AsyncGenerator

import pytest
from aiohttp.test_utils import TestServer

from eris.adapters import DemoPlayer
from eris.agent import AgentRuntime
from eris.controller import ControllerRuntime
from eris.hub import RelayHub, create_app
from eris.lib.link import HubLink
from eris.lib.models import Command, Movie, Role
from eris.lib.protocol import REASON_COMMAND

from .conftest import get_free_port, wait_for


@pytest.fixture
async def hub_url() -> AsyncGenerator[str, None]:
    async with TestServer(create_app(RelayHub(send_timeout=0.5))) as server:
        yield f"ws://{server.host}:{server.port}/ws"


@contextlib.asynccontextmanager
async def running_controller(url: str):
    controller = ControllerRuntime(HubLink(url, Role.CONTROLLER), reconnect_interval=0.05)
    task = asyncio.create_task(controller.run())
    try:
        yield controller
    finally:
        await controller.stop()
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


async def test_seek_reaches_player_and_status_comes_back(hub_url: str) -> None:
    player = DemoPlayer(duration=3600.0, volume=0.8, clock=lambda: 0.0,
                        metadata=Movie(title="Harbour Lights"))
    await player.play()
    agent = AgentRuntime(player, HubLink(hub_url, Role.AGENT), poll_interval=0.5)
    await agent.start()
    try:
        async with running_controller(hub_url) as controller:
            await wait_for(lambda: controller.status is not None)
            assert controller.status.elapsed == 0.0

            assert await controller.send(Command("seek", position=120.0))
            await wait_for(lambda: controller.status.elapsed == 120.0, timeout=1.0)

            status = controller.status
            assert status.duration == 3600.0
            assert status.is_playing
            assert status.volume == 80
            assert status.metadata.title == "Harbour Lights"
    finally:
        await agent.stop()

    assert await player.position() == 120.0


async def test_command_report_arrives_before_next_tick(hub_url: str) -> None:
    agent = AgentRuntime(DemoPlayer(clock=lambda: 0.0), HubLink(hub_url, Role.AGENT),
                         poll_interval=10.0)
    await agent.start()
    try:
        await wait_for(lambda: agent.reports_sent == 1)
        async with running_controller(hub_url) as controller:
            await wait_for(lambda: controller.link.connected)
            await controller.send(Command("volume", level=55))
            await wait_for(lambda: controller.reason == REASON_COMMAND, timeout=1.0)
            assert controller.status.volume == 55
    finally:
        await agent.stop()


async def test_fractional_volume_is_rounded(hub_url: str) -> None:
    agent = AgentRuntime(DemoPlayer(volume=0.8732, clock=lambda: 0.0),
                         HubLink(hub_url, Role.AGENT), poll_interval=0.1)
    await agent.start()
    try:
        async with running_controller(hub_url) as controller:
            await wait_for(lambda: controller.status is not None)
            assert controller.status.volume == 87
    finally:
        await agent.stop()


async def test_agent_without_hub_keeps_trying() -> None:
    link = HubLink(f"ws://127.0.0.1:{get_free_port()}/ws", Role.AGENT, connect_timeout=0.2)
    agent = AgentRuntime(DemoPlayer(), link, poll_interval=0.05)
    await agent.start()
    await asyncio.sleep(0.5)
    await agent.stop()

    assert agent.reports_sent == 0
    assert link.connect_attempts >= 4


async def test_agent_connects_once_hub_is_up() -> None:
    port = get_free_port()
    url = f"ws://127.0.0.1:{port}/ws"
    agent = AgentRuntime(DemoPlayer(clock=lambda: 0.0), HubLink(url, Role.AGENT),
                         poll_interval=0.05)
    await agent.start()
    try:
        await asyncio.sleep(0.2)
        assert agent.reports_sent == 0

        async with TestServer(create_app(), port=port):
            async with running_controller(url) as controller:
                await wait_for(lambda: controller.status is not None)
        assert agent.reports_sent > 0
    finally:
        await agent.stop()
