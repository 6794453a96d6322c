# Eris Relay
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Eris Relay Hub (eris-hub)

Sits between controllers (phones, browsers, `eris send`) and the single
playback agent.  Commands from any connection go to every agent; status
reports from the agent go to every controller.  Peers have no identity
beyond their role, and nobody is told when another peer leaves.

The hub is transport only.  It checks a frame's envelope (a JSON object
tagged command or status, status only from agents) and forwards a status
object exactly as the agent serialized it.  Commands are parsed, since the
HTTP ingress and agents rely on them being well formed.

Each message class has a bounded queue drained by one fan-out task, so a
sender's messages reach every recipient in the order they were sent.
Writes to a recipient are time-bounded; a slow controller misses frames
instead of holding up everyone else.

Port: 8780
"""

import asyncio
import logging
from uuid import uuid4

from aiohttp import WSCloseCode, WSMsgType, web

from .lib.config import DEFAULT_HUB_PORT, cfg
from .lib.models import Command, Role
from .lib.protocol import (
    COMMAND,
    REASON_CLIENT_CONNECT,
    REASON_POLL,
    ProtocolError,
    encode_command,
    encode_status_data,
    parse_command,
    read_envelope,
)

logger = logging.getLogger("eris-hub")

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------
HUB_HOST = "0.0.0.0"
QUEUE_SIZE = 64          # per message class
SEND_TIMEOUT = 1.0       # seconds per recipient write
HEARTBEAT = 10.0         # WebSocket ping interval, detects dead peers


# ---------------------------------------------------------------------------
# Peers
# ---------------------------------------------------------------------------
class Peer:
    """One live hub connection tagged with its role."""

    def __init__(self, role: Role, socket):
        self.id = f"peer_{uuid4().hex[:12]}"
        self.role = role
        self.socket = socket   # anything with async send_str() / close()
        self.alive = True

    async def send(self, frame: str):
        await self.socket.send_str(frame)

    def __repr__(self):
        return f"<Peer {self.id} {self.role.value}>"


class RelayHub:
    """Role-partitioned broadcast between controllers and the agent."""

    def __init__(self, *, queue_size: int = QUEUE_SIZE, send_timeout: float = SEND_TIMEOUT):
        self.send_timeout = send_timeout
        self._peers: dict[Role, dict[str, Peer]] = {role: {} for role in Role}
        self._commands: asyncio.Queue[str] = asyncio.Queue(maxsize=queue_size)
        self._statuses: asyncio.Queue[tuple[dict, str]] = asyncio.Queue(maxsize=queue_size)
        self._current_status: dict | None = None
        self._tasks: list[asyncio.Task] = []
        self.dropped = {"commands": 0, "statuses": 0, "deliveries": 0}

    @property
    def current_status(self) -> dict | None:
        """The most recently broadcast status object, as the agent sent it."""
        return self._current_status

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    def peers(self, role: Role) -> list[Peer]:
        """Snapshot of the live peers for *role*."""
        return list(self._peers[role].values())

    def counts(self) -> dict[str, int]:
        return {role.value: len(table) for role, table in self._peers.items()}

    # ── Lifecycle ──

    async def start(self):
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._command_loop(), name="eris-hub-commands"),
            asyncio.create_task(self._status_loop(), name="eris-hub-statuses"),
        ]
        logger.info("Relay hub started (queue %d, send timeout %.1fs)",
                    self._commands.maxsize, self.send_timeout)

    async def stop(self):
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []

        for role in Role:
            for peer in self.peers(role):
                try:
                    await peer.socket.close(code=WSCloseCode.GOING_AWAY,
                                            message=b"hub shutdown")
                except Exception as e:
                    logger.debug("Error closing %s: %s", peer, e)
            self._peers[role].clear()
        logger.info("Relay hub stopped")

    # ── Connections ──

    async def connect(self, socket, role: Role) -> Peer:
        """Register a connection.  Controllers first get the current status."""
        peer = Peer(Role(role), socket)

        # Sent before the peer joins the live set, so a newer broadcast can
        # never overtake this older snapshot
        if peer.role is Role.CONTROLLER and self._current_status is not None:
            await self._deliver(peer, encode_status_data(self._current_status, REASON_CLIENT_CONNECT))
            if not peer.alive:
                logger.info("%s gone before it joined", peer.id)
                return peer

        if peer.role is Role.AGENT and self._peers[Role.AGENT]:
            logger.warning("Another agent connected, commands now go to %d agents",
                           len(self._peers[Role.AGENT]) + 1)

        self._peers[peer.role][peer.id] = peer
        logger.info("%s connected as %s (%s)", peer.id, peer.role.value, self.counts())
        return peer

    def disconnect(self, peer_id: str) -> bool:
        for table in self._peers.values():
            peer = table.pop(peer_id, None)
            if peer is not None:
                logger.info("%s disconnected (%s)", peer_id, self.counts())
                return True
        return False

    # ── Producers ──

    def submit_command(self, command: Command, sender: Peer | None = None) -> bool:
        """Queue *command* for every agent.  Accepted from any connection."""
        try:
            self._commands.put_nowait(encode_command(command))
        except asyncio.QueueFull:
            self.dropped["commands"] += 1
            logger.warning("Command queue full, dropping %s from %s",
                           command.kind.value, sender.id if sender else "http")
            return False
        logger.debug("Command %s from %s queued", command.kind.value,
                     sender.id if sender else "http")
        return True

    def submit_status(self, status: dict, sender: Peer,
                      reason: str = REASON_POLL) -> bool:
        """Queue the status object *status* for every controller, unmodified.

        Only agents may report.
        """
        if sender is None or sender.role is not Role.AGENT:
            logger.warning("Ignoring status report from %s (not an agent)", sender)
            return False
        if self._statuses.full():
            # Newest snapshot wins, the oldest queued one is stale anyway
            self._statuses.get_nowait()
            self.dropped["statuses"] += 1
        self._statuses.put_nowait((status, reason))
        return True

    def handle_frame(self, peer: Peer, raw: str | bytes):
        """Route one inbound frame.  Malformed frames are dropped, the peer stays."""
        try:
            frame = read_envelope(raw)
            command = parse_command(frame.get("data")) if frame["type"] == COMMAND else None
        except ProtocolError as e:
            logger.warning("Dropping malformed frame from %s: %s", peer.id, e)
            return

        if command is not None:
            self.submit_command(command, sender=peer)
        else:
            self.submit_status(frame["data"], sender=peer,
                               reason=frame.get("reason") or REASON_POLL)

    # ── Fan-out ──

    async def _command_loop(self):
        while True:
            frame = await self._commands.get()
            await self._fan_out(Role.AGENT, frame)

    async def _status_loop(self):
        while True:
            status, reason = await self._statuses.get()
            self._current_status = status
            await self._fan_out(Role.CONTROLLER, encode_status_data(status, reason))

    async def _fan_out(self, role: Role, frame: str):
        recipients = self.peers(role)
        if not recipients:
            logger.debug("No %s peers, frame dropped", role.value)
            return
        results = await asyncio.gather(*(self._deliver(p, frame) for p in recipients))
        logger.debug("Fan-out to %d/%d %s peers", sum(results), len(recipients), role.value)

    async def _deliver(self, peer: Peer, frame: str) -> bool:
        try:
            await asyncio.wait_for(peer.send(frame), timeout=self.send_timeout)
            return True
        except asyncio.TimeoutError:
            self.dropped["deliveries"] += 1
            logger.debug("%s too slow, frame dropped", peer.id)
        except Exception as e:
            self.dropped["deliveries"] += 1
            peer.alive = False
            logger.debug("%s unreachable (%s), removing", peer.id, e)
            self.disconnect(peer.id)
        return False


# ---------------------------------------------------------------------------
# HTTP handlers
# ---------------------------------------------------------------------------
HUB_KEY = web.AppKey("hub", RelayHub)


async def handle_ws(request: web.Request) -> web.StreamResponse:
    """GET /ws?role=agent|controller: the relay channel."""
    role_name = request.query.get("role", Role.CONTROLLER.value)
    try:
        role = Role(role_name)
    except ValueError:
        return web.json_response({"error": f"unknown role '{role_name}'"}, status=400)

    hub = request.app[HUB_KEY]
    ws = web.WebSocketResponse(heartbeat=float(cfg("hub", "heartbeat", default=HEARTBEAT)))
    await ws.prepare(request)

    peer = await hub.connect(ws, role)
    if not peer.alive:
        return ws
    try:
        async for msg in ws:
            if msg.type in (WSMsgType.TEXT, WSMsgType.BINARY):
                hub.handle_frame(peer, msg.data)
            elif msg.type == WSMsgType.ERROR:
                logger.warning("%s connection error: %s", peer.id, ws.exception())
    finally:
        hub.disconnect(peer.id)

    return ws


async def handle_command(request: web.Request) -> web.Response:
    """POST /command: HTTP ingress for controllers that don't hold a socket."""
    try:
        data = await request.json()
    except Exception:
        return web.json_response({"error": "invalid json"}, status=400)

    try:
        command = parse_command(data)
    except ProtocolError as e:
        return web.json_response({"error": str(e)}, status=400)

    # Acknowledges ingress only; the playback result arrives as a status report
    accepted = request.app[HUB_KEY].submit_command(command)
    if not accepted:
        return web.json_response({"error": "command queue full"}, status=503)
    return web.json_response({"status": "ok"})


async def handle_status(request: web.Request) -> web.Response:
    """GET /status: current snapshot and peer counts."""
    hub = request.app[HUB_KEY]
    return web.json_response({
        "status": hub.current_status,
        "peers": hub.counts(),
        "dropped": dict(hub.dropped),
    })


async def handle_health(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok"})


# ---------------------------------------------------------------------------
# App lifecycle
# ---------------------------------------------------------------------------
async def on_startup(app: web.Application):
    await app[HUB_KEY].start()


async def on_shutdown(app: web.Application):
    await app[HUB_KEY].stop()


CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


@web.middleware
async def cors_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Browser controllers call from other origins; preflights never reach a handler."""
    resp = web.Response() if request.method == "OPTIONS" else await handler(request)
    resp.headers.update(CORS_HEADERS)
    return resp


def create_app(hub: RelayHub | None = None) -> web.Application:
    if hub is None:
        hub = RelayHub(
            queue_size=int(cfg("hub", "queue_size", default=QUEUE_SIZE)),
            send_timeout=float(cfg("hub", "send_timeout", default=SEND_TIMEOUT)),
        )
    app = web.Application(middlewares=[cors_middleware])
    app[HUB_KEY] = hub
    app.router.add_get("/ws", handle_ws)
    app.router.add_post("/command", handle_command)
    app.router.add_get("/status", handle_status)
    app.router.add_get("/health", handle_health)
    app.on_startup.append(on_startup)
    app.on_shutdown.append(on_shutdown)
    return app


def run(host: str | None = None, port: int | None = None):
    host = host or cfg("hub", "host", default=HUB_HOST)
    port = port or int(cfg("hub", "port", default=DEFAULT_HUB_PORT))
    web.run_app(create_app(), host=host, port=port, print=lambda msg: logger.info(msg))


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="[%(asctime)s] %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    run()
