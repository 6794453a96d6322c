# Eris Relay
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Wire format for the hub WebSocket.

Every frame is one JSON object tagged with ``type``:

    {"type": "command", "data": {"kind": "seek", "position": 120.0}}
    {"type": "status", "reason": "poll", "data": {...PlaybackStatus...}}

``decode()`` turns a raw frame into a typed ``Message`` for the agent and
controllers.  The hub only needs ``read_envelope()``: it checks the frame is a
tagged JSON object and leaves the status payload exactly as the agent sent
it.  Anything either of them cannot make sense of raises ``ProtocolError`` and
the caller drops that one frame.
"""

import json
from dataclasses import dataclass

from .models import Command, PlaybackStatus

COMMAND = "command"
STATUS = "status"

# Why a status report was sent
REASON_POLL = "poll"
REASON_COMMAND = "command"
REASON_CLIENT_CONNECT = "client_connect"


class ProtocolError(ValueError):
    """A frame that is not valid JSON or not a known message."""


@dataclass(frozen=True)
class Message:
    type: str
    command: Command | None = None
    status: PlaybackStatus | None = None
    reason: str | None = None


def encode_command(command: Command) -> str:
    return json.dumps({"type": COMMAND, "data": command.to_dict()})


def encode_status(status: PlaybackStatus, reason: str = REASON_POLL) -> str:
    return encode_status_data(status.to_dict(), reason)


def encode_status_data(data: dict, reason: str = REASON_POLL) -> str:
    """Wrap an already-serialized status object, untouched."""
    return json.dumps({"type": STATUS, "reason": reason, "data": data})


def read_envelope(raw: str | bytes) -> dict:
    """Parse *raw* and check only the envelope: an object with a known type.

    A status frame must carry an object in ``data``; what is inside it is
    the agent's business.
    """
    try:
        frame = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as e:
        raise ProtocolError(f"invalid JSON: {e}") from None

    if not isinstance(frame, dict):
        raise ProtocolError("frame must be a JSON object")
    msg_type = frame.get("type")
    if msg_type not in (COMMAND, STATUS):
        raise ProtocolError(f"unknown message type: {msg_type!r}")
    if msg_type == STATUS and not isinstance(frame.get("data"), dict):
        raise ProtocolError("status data must be an object")
    return frame


def decode(raw: str | bytes) -> Message:
    frame = read_envelope(raw)
    msg_type = frame["type"]
    try:
        if msg_type == COMMAND:
            return Message(type=COMMAND, command=Command.from_dict(frame.get("data")))
        return Message(
            type=STATUS,
            status=PlaybackStatus.from_dict(frame["data"]),
            reason=frame.get("reason"),
        )
    except (ValueError, TypeError) as e:
        raise ProtocolError(f"invalid {msg_type}: {e}") from None


def parse_command(data) -> Command:
    """Parse a bare command object, as posted to the HTTP ingress."""
    try:
        return Command.from_dict(data)
    except (ValueError, TypeError) as e:
        raise ProtocolError(str(e)) from None
