"""
Pluggable player adapters for the Eris agent.

The factory ``create_player_adapter`` reads config.json and returns the
right adapter.

Supported types:
  - ``demo``  in-memory player, no media stack needed (default)
  - ``mpv``   mpv via its JSON IPC socket (``--input-ipc-server``)
"""

import logging

from ..lib.config import cfg
from .base import SKIP_SECONDS, PlayerAdapter
from .demo import DemoPlayer
from .mpv import IPC_SOCKET, MpvPlayer

logger = logging.getLogger("eris-agent.player")

__all__ = [
    "PlayerAdapter",
    "DemoPlayer",
    "MpvPlayer",
    "create_player_adapter",
]


def create_player_adapter(player_type: str | None = None) -> PlayerAdapter:
    """Create the player adapter named by *player_type* or config.json.

    Reads from config.json "player" section:
      type          "demo" or "mpv" (default "demo")
      ipc_socket    mpv IPC socket path (mpv only, default /tmp/eris-mpv.sock)
      skip_seconds  jump size for back/forward (default 30)
    """
    player_type = str(player_type or cfg("player", "type", default="demo")).lower()
    skip = float(cfg("player", "skip_seconds", default=SKIP_SECONDS))

    if player_type == "mpv":
        path = cfg("player", "ipc_socket", default=IPC_SOCKET)
        logger.info("Player adapter: mpv @ %s (skip %.0fs)", path, skip)
        return MpvPlayer(path, skip_seconds=skip)
    if player_type != "demo":
        logger.warning("Unknown player type '%s', falling back to demo", player_type)
    logger.info("Player adapter: demo (skip %.0fs)", skip)
    return DemoPlayer(skip_seconds=skip)
