"""Client-side video progress tracking.

Provides:
- ProgressTracker: samples a player and sends throttled progress updates
- ProgressApiClient: httpx sink for the progress API
"""

from .client import ProgressApiClient, ProgressApiError
from .player import PLAYER_STATE_PLAYING, PlayerHandle
from .tracker import ProgressSample, ProgressTracker, TrackerState


__all__ = [
    "PLAYER_STATE_PLAYING",
    "PlayerHandle",
    "ProgressApiClient",
    "ProgressApiError",
    "ProgressSample",
    "ProgressTracker",
    "TrackerState",
]
