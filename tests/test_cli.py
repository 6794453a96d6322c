"""Tests for the eris command line."""

import pytest

from eris.cli import build_command, format_status, main
from eris.lib.models import Command, CommandKind

from .conftest import get_free_port, make_show_status, make_status


def test_build_command() -> None:
    assert build_command("seek", "120") == Command("seek", position=120.0)
    assert build_command("volume", "55") == Command(CommandKind.VOLUME, level=55)
    assert build_command("play", None) == Command("play")


@pytest.mark.parametrize(
    "kind, value",
    [("seek", None), ("volume", None), ("volume", "loud"), ("pause", "3"), ("volume", "150")],
)
def test_build_command_rejects(kind, value) -> None:
    with pytest.raises(ValueError):
        build_command(kind, value)


def test_format_status() -> None:
    line = format_status(make_status(elapsed=61.5))
    assert "61.5/3600.0s" in line
    assert "playing" in line
    assert "vol  80" in line
    assert line.endswith("Harbour Lights")

    line = format_status(make_show_status(is_playing=False))
    assert "paused" in line
    assert line.endswith("Lighthouse Keepers: Low Tide")


def test_send_needs_a_value(capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        main(["send", "seek"])
    assert exc.value.code == 2
    assert "seek needs a position" in capsys.readouterr().err


def test_send_without_hub_fails() -> None:
    url = f"ws://127.0.0.1:{get_free_port()}/ws"
    assert main(["send", "pause", "--hub-url", url]) == 1
