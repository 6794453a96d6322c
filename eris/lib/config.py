# Eris Relay
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Shared configuration loader for the Eris hub, agent and controllers.

Loads a single JSON config file.  Search order:
  1. $ERIS_CONFIG                  (explicit path, e.g. from a unit file)
  2. /etc/eris/config.json         (deployed)
  3. config.json                   (CWD, handy for local dev)

Usage:
    from eris.lib.config import cfg

    port      = cfg("hub", "port", default=8780)
    interval  = cfg("agent", "poll_interval", default=0.5)
    player    = cfg("player")  # returns the whole dict
"""

import json
import logging
import os

logger = logging.getLogger(__name__)

_config: dict | None = None

PLAYER_TYPES = ("demo", "mpv")

DEFAULT_HUB_PORT = 8780
DEFAULT_POLL_INTERVAL = 0.5
DEFAULT_RECONNECT_ATTEMPTS = 1


def _search_paths() -> list[str]:
    paths = ["/etc/eris/config.json", "config.json"]
    explicit = os.environ.get("ERIS_CONFIG")
    if explicit:
        paths.insert(0, explicit)
    return paths


def _validate(config: dict, path: str) -> None:
    """Warn about missing or suspicious config values."""
    agent = config.get("agent") or {}
    interval = agent.get("poll_interval", DEFAULT_POLL_INTERVAL)
    if not isinstance(interval, (int, float)) or interval <= 0:
        logger.warning("Config %s: agent.poll_interval must be > 0 (got %r)", path, interval)
    attempts = agent.get("reconnect_attempts", DEFAULT_RECONNECT_ATTEMPTS)
    if attempts != DEFAULT_RECONNECT_ATTEMPTS:
        logger.warning("Config %s: agent.reconnect_attempts=%r, the relay is tuned for 1 per tick",
                       path, attempts)
    player = config.get("player") or {}
    player_type = player.get("type", "demo")
    if player_type not in PLAYER_TYPES:
        logger.warning("Config %s: unknown player.type '%s'", path, player_type)


def _read(path: str) -> dict | None:
    """Parsed contents of *path*, or None if it is missing or not valid JSON."""
    try:
        with open(path) as f:
            data = json.load(f)
    except FileNotFoundError:
        return None
    except json.JSONDecodeError as e:
        logger.error("Invalid JSON in %s: %s", path, e)
        return None
    if not isinstance(data, dict):
        logger.error("Config %s is not a JSON object, ignored", path)
        return None
    return data


def load_config() -> dict:
    """The active config dict.  The first readable file wins; read once."""
    global _config
    if _config is None:
        _config = {}
        for path in _search_paths():
            data = _read(path)
            if data is not None:
                logger.info("Config loaded from %s", path)
                _validate(data, path)
                _config = data
                break
        else:
            logger.warning("No config file found, running on defaults")
    return _config


def cfg(section: str, key: str | None = None, *, default=None):
    """One value from the config, or *default* when it is not set.

    With no *key* the whole section is returned.  A section that is not an
    object has no keys.
    """
    value = load_config().get(section)
    if key is not None:
        value = value.get(key) if isinstance(value, dict) else None
    return default if value is None else value


def reload_config() -> dict:
    """Drop the cached config and read it again."""
    global _config
    _config = None
    return load_config()

