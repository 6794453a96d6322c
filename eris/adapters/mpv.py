# Eris Relay
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
mpv player adapter, via mpv's JSON IPC socket.

Start mpv with ``--input-ipc-server=/tmp/eris-mpv.sock`` and point
``player.ipc_socket`` at the same path.  Each request is one JSON line
tagged with a request_id; property-change events and stale replies on the
same socket are skipped while waiting for the matching reply.

mpv's volume is 0-100 (up to 130 with softvol boost); it is scaled to the
0.0-1.0 range PlaybackStatus.from_player expects.
"""

import asyncio
import json
import logging

from ..lib.models import Movie, PlaybackStatus
from .base import PlayerAdapter

log = logging.getLogger(__name__)

IPC_SOCKET = "/tmp/eris-mpv.sock"


class MpvError(Exception):
    """mpv answered a request with something other than success."""


class MpvPlayer(PlayerAdapter):
    def __init__(self, socket_path: str = IPC_SOCKET, *, timeout: float = 1.0, **kwargs):
        super().__init__(**kwargs)
        self.socket_path = socket_path
        self.timeout = timeout
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._request_id = 0
        self._lock = asyncio.Lock()

    # ── IPC communication ──

    async def _ensure_ipc(self):
        if self._writer is not None and not self._writer.is_closing():
            return
        self._reader, self._writer = await asyncio.open_unix_connection(self.socket_path)
        log.info("Connected to mpv IPC at %s", self.socket_path)

    async def _close_ipc(self):
        if self._writer:
            try:
                self._writer.close()
                await self._writer.wait_closed()
            except OSError:
                pass
        self._reader = None
        self._writer = None

    async def _read_reply(self, request_id: int) -> dict:
        while True:
            line = await self._reader.readline()
            if not line:
                raise ConnectionResetError("mpv closed the IPC socket")
            try:
                msg = json.loads(line)
            except json.JSONDecodeError:
                continue
            if msg.get("request_id") == request_id:
                return msg

    async def _request(self, *command):
        async with self._lock:
            await self._ensure_ipc()
            self._request_id += 1
            request_id = self._request_id
            payload = {"command": list(command), "request_id": request_id}
            try:
                self._writer.write(json.dumps(payload).encode() + b"\n")
                await self._writer.drain()
                reply = await asyncio.wait_for(self._read_reply(request_id), self.timeout)
            except (OSError, asyncio.TimeoutError):
                # Next request reconnects
                await self._close_ipc()
                raise

        if reply.get("error") != "success":
            raise MpvError(f"{command[0]} failed: {reply.get('error')}")
        return reply.get("data")

    async def _get(self, name: str, default=None):
        """get_property, with *default* for properties mpv has no value for."""
        try:
            value = await self._request("get_property", name)
        except MpvError:
            return default
        return default if value is None else value

    # ── PlayerAdapter ──

    async def read(self) -> PlaybackStatus:
        duration = await self._get("duration", 0.0)
        elapsed = await self._get("time-pos", 0.0)
        paused = await self._get("pause", True)
        volume = await self._get("volume", 100.0)
        title = await self._get("media-title", "")
        return PlaybackStatus.from_player(
            duration=duration,
            elapsed=elapsed,
            is_playing=not paused,
            volume=volume / 100,
            metadata=Movie(title=title),
        )

    async def play(self):
        await self._request("set_property", "pause", False)

    async def pause(self):
        await self._request("set_property", "pause", True)

    async def seek(self, position: float):
        await self._request("seek", position, "absolute")

    async def set_volume(self, level: int):
        await self._request("set_property", "volume", level)

    async def position(self) -> float:
        return await self._get("time-pos", 0.0)

    async def close(self):
        await self._close_ipc()
