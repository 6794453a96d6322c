# Eris Relay
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Eris Playback Agent (eris-agent)

Bridges the relay hub and the local player.  The agent is the only process
that touches the player, so whatever it reports is the truth controllers
render.

  - Every poll interval (default 500 ms) it reads the player and reports.
  - After every command it reports once more, straight away, so the
    controller that sent it doesn't wait for the next tick.
  - Before every report it checks the hub link.  If it is down it spends
    one connect attempt; if that fails the report is dropped and the next
    tick tries again.  No backoff: the hub lives on the same LAN.
  - Player errors never reach controllers.  A failed command is logged, a
    failed read is replaced by the last good snapshot.

State: DISCONNECTED -> IDLE on connect; IDLE -> REPORTING -> IDLE per tick;
IDLE -> APPLYING -> REPORTING -> IDLE per command; any -> DISCONNECTED when
the link drops.
"""

import asyncio
import logging
import signal
from enum import Enum

from .adapters import PlayerAdapter, create_player_adapter
from .lib.config import DEFAULT_POLL_INTERVAL, DEFAULT_RECONNECT_ATTEMPTS, cfg
from .lib.link import HubLink
from .lib.models import Command, PlaybackStatus, Role
from .lib.protocol import (
    COMMAND,
    REASON_COMMAND,
    REASON_POLL,
    ProtocolError,
    decode,
    encode_status,
)

logger = logging.getLogger("eris-agent")

HUB_URL = "ws://localhost:8780/ws"


class AgentState(Enum):
    DISCONNECTED = "disconnected"
    IDLE = "idle"
    REPORTING = "reporting"
    APPLYING = "applying"


class AgentRuntime:
    def __init__(self, adapter: PlayerAdapter, link: HubLink, *,
                 poll_interval: float = DEFAULT_POLL_INTERVAL,
                 reconnect_attempts: int = DEFAULT_RECONNECT_ATTEMPTS):
        self.adapter = adapter
        self.link = link
        self.poll_interval = poll_interval
        self.reconnect_attempts = reconnect_attempts
        self.running = False
        self.reports_sent = 0
        self.reports_dropped = 0
        self._last_status: PlaybackStatus | None = None
        self._read_failing = False
        self._reporting = False
        self._applying = False
        # Serializes reports so snapshots leave in the order they were read
        self._report_lock = asyncio.Lock()
        self._tasks: list[asyncio.Task] = []

    @property
    def state(self) -> AgentState:
        if self._reporting:
            return AgentState.REPORTING
        if self._applying:
            return AgentState.APPLYING
        return AgentState.IDLE if self.link.connected else AgentState.DISCONNECTED

    @property
    def last_status(self) -> PlaybackStatus | None:
        return self._last_status

    # ── Reporting ──

    async def report(self, reason: str = REASON_POLL) -> bool:
        """Read the player and send one status report.  Returns True if sent."""
        async with self._report_lock:
            self._reporting = True
            try:
                return await self._report(reason)
            finally:
                self._reporting = False

    async def _report(self, reason: str) -> bool:
        if not self.link.connected and not await self._reconnect():
            self.reports_dropped += 1
            logger.debug("Hub unreachable, %s report dropped", reason)
            return False

        status = await self._read_status()
        frame = self._encode(status, reason) if status is not None else None
        if frame is None:
            self.reports_dropped += 1
            return False

        if not await self.link.send(frame):
            self.reports_dropped += 1
            logger.debug("Send failed, %s report dropped", reason)
            return False

        self.reports_sent += 1
        logger.debug("Reported %s: %.1f/%.1fs playing=%s vol=%d", reason,
                     status.elapsed, status.duration, status.is_playing, status.volume)
        return True

    async def _reconnect(self) -> bool:
        for _ in range(self.reconnect_attempts):
            if await self.link.connect():
                return True
        return False

    async def _read_status(self) -> PlaybackStatus | None:
        try:
            status = await self.adapter.read()
        except Exception as e:
            if not self._read_failing:
                logger.warning("Player read failed (%s), reporting last known status", e)
                self._read_failing = True
            return self._last_status

        if self._read_failing:
            logger.info("Player read recovered")
            self._read_failing = False
        return status

    def _encode(self, status: PlaybackStatus, reason: str) -> str | None:
        """Serialize *status*; a snapshot that won't serialize counts as a failed read."""
        try:
            frame = encode_status(status, reason)
        except (TypeError, ValueError) as e:
            if status is self._last_status or self._last_status is None:
                logger.warning("Player status not serializable (%s), %s report dropped", e, reason)
                return None
            logger.warning("Player status not serializable (%s), reporting last known status", e)
            return encode_status(self._last_status, reason)
        self._last_status = status
        return frame

    # ── Commands ──

    async def apply(self, command: Command) -> bool:
        """Apply *command* to the player, then report.  Player errors are swallowed."""
        self._applying = True
        try:
            await self.adapter.apply(command)
            logger.info("Applied %s", command.kind.value)
        except Exception as e:
            logger.warning("Player could not apply %s: %s", command.kind.value, e)
        finally:
            self._applying = False
        return await self.report(REASON_COMMAND)

    # ── Loops ──

    async def _poll_loop(self):
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while self.running:
            try:
                await self.report(REASON_POLL)
            except Exception:
                logger.exception("Poll report failed")
            next_tick += self.poll_interval
            now = loop.time()
            # A slow tick (connect timeout, slow player) skips ticks, it doesn't burst
            while next_tick <= now:
                next_tick += self.poll_interval
            await asyncio.sleep(next_tick - now)

    async def _receive_loop(self):
        while self.running:
            await self.link.wait_connected()
            raw = await self.link.receive()
            if raw is None:
                continue
            try:
                message = decode(raw)
            except ProtocolError as e:
                logger.warning("Dropping malformed frame from hub: %s", e)
                continue
            if message.type != COMMAND:
                logger.debug("Ignoring %s frame", message.type)
                continue
            try:
                await self.apply(message.command)
            except Exception:
                logger.exception("Handling %s failed", message.command.kind.value)

    # ── Lifecycle ──

    async def start(self):
        self.running = True
        self._tasks = [
            asyncio.create_task(self._poll_loop(), name="eris-agent-poll"),
            asyncio.create_task(self._receive_loop(), name="eris-agent-receive"),
        ]
        logger.info("Agent started (hub %s, every %.0f ms)",
                    self.link.url, self.poll_interval * 1000)

    async def stop(self):
        self.running = False
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []
        await self.link.close()
        await self.adapter.close()
        logger.info("Agent stopped (%d reports sent, %d dropped)",
                    self.reports_sent, self.reports_dropped)

    async def run(self):
        """Convenience entry-point: start + wait for signal + stop."""
        await self.start()
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, stop_event.set)
        try:
            await stop_event.wait()
        finally:
            await self.stop()


def build_agent(hub_url: str | None = None, player_type: str | None = None,
                poll_interval: float | None = None) -> AgentRuntime:
    """Build an agent from config.json, with explicit arguments taking precedence.

    The connect timeout never exceeds the poll interval, so an unreachable hub
    still costs one attempt per tick.
    """
    interval = poll_interval or float(cfg("agent", "poll_interval", default=DEFAULT_POLL_INTERVAL))
    timeout = float(cfg("agent", "connect_timeout", default=interval))
    link = HubLink(
        hub_url or cfg("agent", "hub_url", default=HUB_URL),
        Role.AGENT,
        connect_timeout=min(timeout, interval),
    )
    return AgentRuntime(
        create_player_adapter(player_type),
        link,
        poll_interval=interval,
        reconnect_attempts=int(
            cfg("agent", "reconnect_attempts", default=DEFAULT_RECONNECT_ATTEMPTS)),
    )


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="[%(asctime)s] %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    asyncio.run(build_agent().run())
