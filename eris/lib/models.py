# Eris Relay
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Value types shared by the hub, the agent and controllers.

Everything here is a frozen dataclass.  A status report is a complete
snapshot: receivers replace what they hold, they never merge.

Metadata is a tagged variant:

    Movie(title, artwork, boxart, storyart, synopsis)
    Show(... same ..., episode: Episode | None, season: Season | None)

On the wire the variant is selected by ``"type": "movie" | "show"``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Union


class Role(str, Enum):
    """Coarse role of a hub connection."""

    CONTROLLER = "controller"
    AGENT = "agent"


class CommandKind(str, Enum):
    BACK = "back"
    FORWARD = "forward"
    PAUSE = "pause"
    PLAY = "play"
    SEEK = "seek"
    VOLUME = "volume"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def volume_percent(fraction: float) -> int:
    """Convert a 0.0-1.0 player volume to an integer percent.

    Rounds half up (0.875 -> 88) rather than using round(), which would
    round half to even.
    """
    percent = int(math.floor(fraction * 100 + 0.5))
    return max(0, min(100, percent))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Command:
    """A stateless playback request.  Carries no origin identity."""

    kind: CommandKind
    position: float | None = None   # seek only
    level: int | None = None        # volume only

    def __post_init__(self):
        try:
            kind = CommandKind(self.kind)
        except ValueError:
            raise ValueError(f"unknown command kind: {self.kind!r}") from None
        object.__setattr__(self, "kind", kind)

        if kind is CommandKind.SEEK:
            if not _is_number(self.position) or not math.isfinite(self.position):
                raise ValueError("seek requires a numeric position")
            if self.position < 0:
                raise ValueError(f"seek position must be >= 0, got {self.position}")
            object.__setattr__(self, "position", float(self.position))
        elif self.position is not None:
            raise ValueError(f"{kind.value} does not take a position")

        if kind is CommandKind.VOLUME:
            if not isinstance(self.level, int) or isinstance(self.level, bool):
                raise ValueError("volume requires an integer level")
            if not 0 <= self.level <= 100:
                raise ValueError(f"volume level must be 0..100, got {self.level}")
        elif self.level is not None:
            raise ValueError(f"{kind.value} does not take a level")

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"kind": self.kind.value}
        if self.position is not None:
            data["position"] = self.position
        if self.level is not None:
            data["level"] = self.level
        return data

    @classmethod
    def from_dict(cls, data: dict) -> Command:
        if not isinstance(data, dict):
            raise ValueError("command must be an object")
        return cls(
            kind=data.get("kind"),
            position=data.get("position"),
            level=data.get("level"),
        )


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Episode:
    seq: int | None = None
    title: str | None = None
    thumbs: Any = None
    stills: Any = None
    synopsis: str | None = None

    def to_dict(self) -> dict:
        return {
            "seq": self.seq,
            "title": self.title,
            "thumbs": self.thumbs,
            "stills": self.stills,
            "synopsis": self.synopsis,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Episode:
        return cls(
            seq=data.get("seq"),
            title=data.get("title"),
            thumbs=data.get("thumbs"),
            stills=data.get("stills"),
            synopsis=data.get("synopsis"),
        )


@dataclass(frozen=True)
class Season:
    """Season info.  Players often expose none of it, so every field is optional."""

    seq: int | None = None
    title: str | None = None

    def to_dict(self) -> dict:
        # Unset fields are left out: an empty season stays `{}` on the wire
        return {k: v for k, v in (("seq", self.seq), ("title", self.title)) if v is not None}

    @classmethod
    def from_dict(cls, data: dict) -> Season:
        return cls(seq=data.get("seq"), title=data.get("title"))


@dataclass(frozen=True)
class Movie:
    type: ClassVar[str] = "movie"

    title: str = ""
    artwork: Any = None
    boxart: Any = None
    storyart: Any = None
    synopsis: str | None = None

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "title": self.title,
            "artwork": self.artwork,
            "boxart": self.boxart,
            "storyart": self.storyart,
            "synopsis": self.synopsis,
        }


@dataclass(frozen=True)
class Show(Movie):
    type: ClassVar[str] = "show"

    episode: Episode | None = None
    season: Season | None = field(default=None)

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.episode is not None:
            data["episode"] = self.episode.to_dict()
        if self.season is not None:
            data["season"] = self.season.to_dict()
        return data


Metadata = Union[Movie, Show]


def metadata_from_dict(data: dict) -> Metadata:
    if not isinstance(data, dict):
        raise ValueError("metadata must be an object")
    kind = data.get("type")
    common = {
        "title": data.get("title") or "",
        "artwork": data.get("artwork"),
        "boxart": data.get("boxart"),
        "storyart": data.get("storyart"),
        "synopsis": data.get("synopsis"),
    }
    if kind == Movie.type:
        return Movie(**common)
    if kind == Show.type:
        episode = data.get("episode")
        season = data.get("season")
        return Show(
            **common,
            episode=Episode.from_dict(episode) if isinstance(episode, dict) else None,
            season=Season.from_dict(season) if isinstance(season, dict) else None,
        )
    raise ValueError(f"unknown metadata type: {kind!r}")


# ---------------------------------------------------------------------------
# Playback status
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class PlaybackStatus:
    """Complete snapshot of what the agent's player is doing.

    ``elapsed <= duration`` is whatever the player says it is; nothing in the
    relay checks or corrects it.
    """

    duration: float
    elapsed: float
    is_playing: bool
    volume: int
    metadata: Metadata

    @classmethod
    def from_player(cls, *, duration: float, elapsed: float, is_playing: bool,
                    volume: float, metadata: Metadata) -> PlaybackStatus:
        """Build a snapshot from raw player values (volume as 0.0-1.0)."""
        return cls(
            duration=float(duration),
            elapsed=float(elapsed),
            is_playing=bool(is_playing),
            volume=volume_percent(volume),
            metadata=metadata,
        )

    def to_dict(self) -> dict:
        return {
            "duration": self.duration,
            "elapsed": self.elapsed,
            "isPlaying": self.is_playing,
            "volume": self.volume,
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> PlaybackStatus:
        if not isinstance(data, dict):
            raise ValueError("status must be an object")
        duration = data.get("duration")
        elapsed = data.get("elapsed")
        is_playing = data.get("isPlaying")
        volume = data.get("volume")
        if not _is_number(duration) or not _is_number(elapsed):
            raise ValueError("status needs numeric duration and elapsed")
        if not isinstance(is_playing, bool):
            raise ValueError("status needs a boolean isPlaying")
        if not isinstance(volume, int) or isinstance(volume, bool):
            raise ValueError("status needs an integer volume")
        return cls(
            duration=float(duration),
            elapsed=float(elapsed),
            is_playing=is_playing,
            volume=volume,
            metadata=metadata_from_dict(data.get("metadata")),
        )
