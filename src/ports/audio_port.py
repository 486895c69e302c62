"""Audio port — abstract interface for playing an alarm cue.

The sound reference is opaque to the core: a preset name ("chime", "beep",
"bell"), "none", or any other reference the adapter knows how to play.
"""

from __future__ import annotations

from typing import Protocol


class AudioPort(Protocol):
    """Abstract audio playback interface used by core modules."""

    async def play(self, sound_ref: str) -> None: ...
