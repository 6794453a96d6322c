# Eris Relay
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
`eris` command line.

Usage:
    eris hub   [--host HOST] [--port PORT]
    eris agent [--hub-url URL] [--player demo|mpv] [--interval SECONDS]
    eris watch [--hub-url URL]
    eris send  KIND [VALUE] [--hub-url URL]     e.g. `eris send seek 120`
"""

import argparse
import asyncio
import logging
import sys

from . import hub
from .agent import HUB_URL, build_agent
from .controller import RECONNECT_INTERVAL, ControllerRuntime
from .lib.config import cfg
from .lib.link import HubLink
from .lib.models import Command, CommandKind, PlaybackStatus, Role

logger = logging.getLogger("eris")


def _hub_url(args) -> str:
    return args.hub_url or cfg("agent", "hub_url", default=HUB_URL)


def _controller(url: str) -> ControllerRuntime:
    interval = float(cfg("controller", "reconnect_interval", default=RECONNECT_INTERVAL))
    return ControllerRuntime(HubLink(url, Role.CONTROLLER), reconnect_interval=interval)


def build_command(kind: str, value: str | None) -> Command:
    """Turn `KIND [VALUE]` from the command line into a Command."""
    kind = CommandKind(kind)
    if kind is CommandKind.SEEK:
        if value is None:
            raise ValueError("seek needs a position in seconds")
        return Command(kind, position=float(value))
    if kind is CommandKind.VOLUME:
        if value is None:
            raise ValueError("volume needs a level 0-100")
        return Command(kind, level=int(value))
    if value is not None:
        raise ValueError(f"{kind.value} takes no value")
    return Command(kind)


def format_status(status: PlaybackStatus) -> str:
    title = status.metadata.title
    episode = getattr(status.metadata, "episode", None)
    if episode is not None and episode.title:
        title = f"{title}: {episode.title}"
    state = "playing" if status.is_playing else "paused"
    return (f"{status.elapsed:8.1f}/{status.duration:.1f}s  {state:<7}  "
            f"vol {status.volume:3d}  {title}")


async def _watch(url: str):
    controller = _controller(url)
    controller.add_listener(lambda status, reason: print(format_status(status), flush=True))
    try:
        await controller.run()
    finally:
        await controller.stop()


async def _send(url: str, command: Command) -> bool:
    controller = _controller(url)
    if not await controller.link.connect():
        logger.error("Could not reach hub at %s", url)
        return False
    try:
        return await controller.send(command)
    finally:
        await controller.stop()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="eris", description="Remote control relay for a playback agent")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_hub = sub.add_parser("hub", help="run the relay hub")
    p_hub.add_argument("--host")
    p_hub.add_argument("--port", type=int)

    p_agent = sub.add_parser("agent", help="run the playback agent")
    p_agent.add_argument("--hub-url")
    p_agent.add_argument("--player", choices=["demo", "mpv"])
    p_agent.add_argument("--interval", type=float, help="poll interval in seconds")

    p_watch = sub.add_parser("watch", help="print status reports as they arrive")
    p_watch.add_argument("--hub-url")

    p_send = sub.add_parser("send", help="send one command")
    p_send.add_argument("kind", choices=[k.value for k in CommandKind])
    p_send.add_argument("value", nargs="?")
    p_send.add_argument("--hub-url")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(asctime)s] %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if args.cmd == "hub":
        hub.run(args.host, args.port)
        return 0

    if args.cmd == "agent":
        agent = build_agent(args.hub_url, args.player, args.interval)
        asyncio.run(agent.run())
        return 0

    if args.cmd == "watch":
        try:
            asyncio.run(_watch(_hub_url(args)))
        except KeyboardInterrupt:
            pass
        return 0

    try:
        command = build_command(args.kind, args.value)
    except ValueError as e:
        parser.error(str(e))
    return 0 if asyncio.run(_send(_hub_url(args), command)) else 1


if __name__ == "__main__":
    sys.exit(main())
