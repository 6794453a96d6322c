# Eris Relay
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Controller runtime: send commands to the hub, keep the latest status.

Every status report is a full snapshot, so ``status`` is simply replaced on
each report; nothing is merged.  There is no acknowledgement for a command
other than the status report that follows it.

Usage:
    controller = ControllerRuntime(HubLink(url, Role.CONTROLLER))
    controller.add_listener(lambda status, reason: render(status))
    asyncio.create_task(controller.run())
    await controller.send(Command("seek", position=120.0))
"""

import asyncio
import logging
from typing import Callable

from .lib.link import HubLink
from .lib.models import Command, PlaybackStatus
from .lib.protocol import STATUS, ProtocolError, decode, encode_command

logger = logging.getLogger("eris-controller")

RECONNECT_INTERVAL = 1.0

StatusListener = Callable[[PlaybackStatus, str], None]


class ControllerRuntime:
    def __init__(self, link: HubLink, *, reconnect_interval: float = RECONNECT_INTERVAL):
        self.link = link
        self.reconnect_interval = reconnect_interval
        self.running = False
        self.status: PlaybackStatus | None = None
        self.reason: str | None = None
        self._listeners: list[StatusListener] = []

    def add_listener(self, callback: StatusListener) -> Callable[[], None]:
        """Call *callback(status, reason)* on every report.  Returns an unsubscribe."""
        self._listeners.append(callback)
        return lambda: self._listeners.remove(callback)

    async def send(self, command: Command) -> bool:
        """Send *command* to the hub.  Nothing is queued while disconnected."""
        if not self.link.connected:
            logger.warning("Not connected to hub, %s dropped", command.kind.value)
            return False
        return await self.link.send(encode_command(command))

    def handle_frame(self, raw: str | bytes):
        try:
            message = decode(raw)
        except ProtocolError as e:
            logger.warning("Dropping malformed frame from hub: %s", e)
            return
        if message.type != STATUS:
            logger.debug("Ignoring %s frame", message.type)
            return

        self.status = message.status
        self.reason = message.reason
        for callback in list(self._listeners):
            try:
                callback(message.status, message.reason)
            except Exception as e:
                logger.error("Status listener failed: %s", e)

    async def run(self):
        """Connect, receive until the link drops, wait, reconnect."""
        self.running = True
        while self.running:
            if not await self.link.connect():
                logger.debug("Hub unreachable, retrying in %.1fs", self.reconnect_interval)
                await asyncio.sleep(self.reconnect_interval)
                continue

            while True:
                raw = await self.link.receive()
                if raw is None:
                    break
                self.handle_frame(raw)

            if self.running:
                logger.info("Hub connection lost, reconnecting in %.1fs", self.reconnect_interval)
                await asyncio.sleep(self.reconnect_interval)

    async def stop(self):
        self.running = False
        await self.link.close()
