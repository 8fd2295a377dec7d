"""Video player adapter contract.

The tracker only needs to read playback position and duration. Players
report their state as integer codes; 1 means playing (YouTube IFrame API
convention), every other code is treated as not playing.
"""

from typing import Protocol


PLAYER_STATE_PLAYING = 1


class PlayerHandle(Protocol):
    """Handle delivered by the player once it is ready."""

    def get_current_time(self) -> float | None:
        """Playback position in seconds."""
        ...

    def get_duration(self) -> float | None:
        """Video length in seconds (None or 0 while unknown)."""
        ...
