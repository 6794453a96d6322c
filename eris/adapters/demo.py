# Eris Relay
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Demo player: an in-memory player that needs no media stack.

Position advances with the monotonic clock while playing.  Handy for trying
the relay end to end (`eris agent --player demo`) and as the adapter the
tests drive.  ``fail_reads`` / ``fail_commands`` make it misbehave on
purpose.
"""

import logging
import time

from ..lib.models import Episode, Metadata, PlaybackStatus, Season, Show
from .base import PlayerAdapter

log = logging.getLogger(__name__)

DEMO_DURATION = 2640.0
DEMO_METADATA = Show(
    title="Lighthouse Keepers",
    artwork="https://example.invalid/art/lighthouse.jpg",
    boxart="https://example.invalid/box/lighthouse.jpg",
    storyart="https://example.invalid/story/lighthouse.jpg",
    synopsis="Three keepers, one island, and a light that must not go out.",
    episode=Episode(
        seq=1,
        title="First Watch",
        thumbs=[],
        stills=[],
        synopsis="A new keeper arrives with the supply boat.",
    ),
    season=Season(),
)


class DemoPlayer(PlayerAdapter):
    def __init__(self, *, duration: float = DEMO_DURATION, metadata: Metadata = DEMO_METADATA,
                 volume: float = 0.8, clock=time.monotonic, **kwargs):
        super().__init__(**kwargs)
        self.duration = duration
        self.metadata = metadata
        self.fail_reads = False
        self.fail_commands = False
        self._clock = clock
        self._volume = volume          # 0.0-1.0, like a browser player
        self._playing = False
        self._offset = 0.0             # position when last paused/seeked
        self._started_at = 0.0

    def _elapsed(self) -> float:
        if not self._playing:
            return self._offset
        return min(self.duration, self._offset + self._clock() - self._started_at)

    def _check(self):
        if self.fail_commands:
            raise RuntimeError("demo player rejected the command")

    async def read(self) -> PlaybackStatus:
        if self.fail_reads:
            raise RuntimeError("demo player unavailable")
        return PlaybackStatus.from_player(
            duration=self.duration,
            elapsed=self._elapsed(),
            is_playing=self._playing,
            volume=self._volume,
            metadata=self.metadata,
        )

    async def play(self):
        self._check()
        if not self._playing:
            self._started_at = self._clock()
            self._playing = True
            log.info("Demo: playing from %.1fs", self._offset)

    async def pause(self):
        self._check()
        if self._playing:
            self._offset = self._elapsed()
            self._playing = False
            log.info("Demo: paused at %.1fs", self._offset)

    async def seek(self, position: float):
        self._check()
        self._offset = max(0.0, min(self.duration, position))
        self._started_at = self._clock()
        log.info("Demo: seek to %.1fs", self._offset)

    async def set_volume(self, level: int):
        self._check()
        self._volume = level / 100

    async def position(self) -> float:
        return self._elapsed()
