# Eris Relay
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Client side of the hub WebSocket, shared by the agent and controllers.

HubLink never reconnects on its own.  Callers decide when to spend a
connect attempt (the agent does it right before a report, controllers on a
fixed retry interval), and every failure is reported as a return value
rather than raised.

Usage:
    link = HubLink("ws://localhost:8780/ws", Role.AGENT)
    if await link.connect():
        await link.send(frame)
        raw = await link.receive()   # None once the connection dropped
    await link.close()
"""

import asyncio
import logging

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.protocol import State

from .models import Role

logger = logging.getLogger(__name__)


class HubLink:
    def __init__(self, url: str, role: Role, *, connect_timeout: float = 2.0):
        self.url = url
        self.role = Role(role)
        self.connect_timeout = connect_timeout
        self.connect_attempts = 0
        self._ws: ClientConnection | None = None
        self._up = asyncio.Event()

    @property
    def endpoint(self) -> str:
        sep = "&" if "?" in self.url else "?"
        return f"{self.url}{sep}role={self.role.value}"

    @property
    def connected(self) -> bool:
        return self._ws is not None and self._ws.state is State.OPEN

    async def connect(self) -> bool:
        """Make exactly one connection attempt.  Returns True when up."""
        if self.connected:
            return True
        self.connect_attempts += 1
        try:
            self._ws = await connect(self.endpoint, open_timeout=self.connect_timeout)
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            logger.debug("Hub connect to %s failed: %s", self.endpoint, e)
            self._ws = None
            self._up.clear()
            return False
        self._up.set()
        logger.info("Connected to hub at %s as %s", self.url, self.role.value)
        return True

    async def wait_connected(self):
        await self._up.wait()

    async def send(self, message: str) -> bool:
        ws = self._ws
        if ws is None:
            return False
        try:
            await ws.send(message)
            return True
        except ConnectionClosed:
            self._drop(ws)
            return False

    async def receive(self) -> str | bytes | None:
        """Next frame from the hub, or None once the connection has dropped."""
        ws = self._ws
        if ws is None:
            return None
        try:
            return await ws.recv()
        except ConnectionClosed:
            self._drop(ws)
            return None

    def _drop(self, ws: ClientConnection):
        # A stale socket failing must not tear down a newer connection
        if self._ws is not ws:
            return
        self._ws = None
        self._up.clear()
        logger.info("Hub connection lost (%s)", self.url)

    async def close(self):
        ws = self._ws
        self._ws = None
        self._up.clear()
        if ws is not None:
            await ws.close()
