# Eris Relay
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Abstract base class for Eris player adapters.

An adapter is the agent's only way to touch the player: ``read()`` returns a
complete PlaybackStatus, ``apply()`` carries out a Command.  Adapters
implement the primitive transport calls; skipping back/forward is built on
top of ``position()`` and ``seek()`` here.
"""

from abc import ABC, abstractmethod

from ..lib.models import Command, CommandKind, PlaybackStatus

SKIP_SECONDS = 30.0


class PlayerAdapter(ABC):
    """Interface every player must implement."""

    def __init__(self, *, skip_seconds: float = SKIP_SECONDS):
        self.skip_seconds = skip_seconds

    @abstractmethod
    async def read(self) -> PlaybackStatus: ...

    @abstractmethod
    async def play(self) -> None: ...

    @abstractmethod
    async def pause(self) -> None: ...

    @abstractmethod
    async def seek(self, position: float) -> None: ...

    @abstractmethod
    async def set_volume(self, level: int) -> None: ...

    @abstractmethod
    async def position(self) -> float: ...

    async def back(self) -> None:
        await self.seek(max(0.0, await self.position() - self.skip_seconds))

    async def forward(self) -> None:
        await self.seek(await self.position() + self.skip_seconds)

    async def apply(self, command: Command) -> None:
        """Carry out *command*.  Errors propagate; the agent decides what to do."""
        kind = command.kind
        if kind is CommandKind.BACK:
            await self.back()
        elif kind is CommandKind.FORWARD:
            await self.forward()
        elif kind is CommandKind.PAUSE:
            await self.pause()
        elif kind is CommandKind.PLAY:
            await self.play()
        elif kind is CommandKind.SEEK:
            await self.seek(command.position)
        elif kind is CommandKind.VOLUME:
            await self.set_volume(command.level)

    async def close(self) -> None:
        pass  # nothing to release by default
