"""Tests for the hub wire format."""

import json

import pytest

from eris.lib.models import Command, CommandKind
from eris.lib.protocol import (
    COMMAND,
    REASON_COMMAND,
    STATUS,
    ProtocolError,
    decode,
    encode_command,
    encode_status,
    encode_status_data,
    parse_command,
    read_envelope,
)

from .conftest import make_show_status


def test_command_frame() -> None:
    frame = encode_command(Command("seek", position=120.0))
    assert json.loads(frame) == {"type": "command", "data": {"kind": "seek", "position": 120.0}}

    message = decode(frame)
    assert message.type == COMMAND
    assert message.command == Command(CommandKind.SEEK, position=120.0)


def test_status_frame_carries_reason() -> None:
    status = make_show_status(elapsed=61.0)
    message = decode(encode_status(status, REASON_COMMAND))
    assert message.type == STATUS
    assert message.reason == REASON_COMMAND
    assert message.status == status


def test_bytes_frames_accepted() -> None:
    message = decode(b'{"type": "command", "data": {"kind": "play"}}')
    assert message.command == Command("play")


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[1, 2, 3]",
        '{"type": "hello"}',
        '{"data": {"kind": "play"}}',
        '{"type": "command", "data": {"kind": "volume", "level": 300}}',
        '{"type": "command", "data": "play"}',
        '{"type": "status", "data": {"duration": 1}}',
    ],
)
def test_malformed_frames_raise_protocol_error(raw) -> None:
    with pytest.raises(ProtocolError):
        decode(raw)


def test_parse_command_for_http_ingress() -> None:
    assert parse_command({"kind": "volume", "level": 30}) == Command("volume", level=30)
    with pytest.raises(ProtocolError):
        parse_command(["volume", 30])


def test_envelope_leaves_status_payload_alone() -> None:
    data = {"volume": 80.0, "metadata": {"type": "podcast", "title": None, "id": 7}}
    frame = read_envelope(encode_status_data(data, REASON_COMMAND))
    assert frame == {"type": "status", "reason": REASON_COMMAND, "data": data}


@pytest.mark.parametrize(
    "raw",
    [
        "{oops",
        '"status"',
        '{"type": "hello", "data": {}}',
        '{"type": "status"}',
        '{"type": "status", "data": [1]}',
    ],
)
def test_envelope_rejects_untagged_frames(raw) -> None:
    with pytest.raises(ProtocolError):
        read_envelope(raw)
