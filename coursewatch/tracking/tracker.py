"""Video progress tracker.

One tracker per (viewer, video) session. While the player is playing, the
tracker samples playback position on a fixed interval, keeps a bounded
history, and sends throttled progress updates to a sink without waiting for
them. State moves idle -> playing <-> paused; the sampling task exists only
while playing.
"""

import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any
from uuid import UUID

import structlog
from pydantic import BaseModel

from coursewatch.config import Settings
from coursewatch.progress.schemas import UpdateVideoProgressRequest

from .player import PLAYER_STATE_PLAYING, PlayerHandle


logger = structlog.get_logger(__name__)

# Percent boundaries that always trigger a send when crossed
PROGRESS_BOUNDARIES = (25.0, 50.0, 70.0, 100.0)

# At or above this percentage, sends are tagged "completed"
COMPLETED_EVENT_THRESHOLD = 70.0

ProgressSink = Callable[[UpdateVideoProgressRequest], Awaitable[Any]]


def _wall_clock_ms() -> float:
    return time.time() * 1000


class TrackerState(str, Enum):
    """Playback state as seen by the tracker."""

    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"


class ProgressSample(BaseModel):
    """One reading of the player."""

    timestamp: int
    current_time: float
    duration: float
    percent: float
    event: str | None = None


class ProgressTracker:
    """Samples a player and reports throttled progress for one video.

    Args:
        viewer_id: Viewer UUID
        course_id: Course UUID
        video_id: Tracked video
        sink: Coroutine function receiving each emitted update
        lesson_id: Lesson backed by the video (defaults to video_id server-side)
        poll_interval_ms: Sampling interval while playing
        throttle_interval_ms: Maximum silence between two sends
        notify_threshold: Percentage firing on_video_completed
        history_size: Number of samples kept in memory
        clock: Returns the current time in milliseconds
        on_progress_update: Called with the sink result after each send
        on_video_completed: Called once per session with the crossing sample
    """

    def __init__(
        self,
        viewer_id: UUID,
        course_id: UUID,
        video_id: str,
        sink: ProgressSink,
        lesson_id: str | None = None,
        *,
        poll_interval_ms: int = 3000,
        throttle_interval_ms: int = 10000,
        notify_threshold: float = 70.0,
        history_size: int = 50,
        clock: Callable[[], float] = _wall_clock_ms,
        on_progress_update: Callable[[Any], None] | None = None,
        on_video_completed: Callable[[ProgressSample], None] | None = None,
    ):
        self.viewer_id = viewer_id
        self.course_id = course_id
        self.sink = sink
        self.poll_interval_ms = poll_interval_ms
        self.throttle_interval_ms = throttle_interval_ms
        self.notify_threshold = notify_threshold
        self.clock = clock
        self.on_progress_update = on_progress_update
        self.on_video_completed = on_video_completed

        self.player: PlayerHandle | None = None
        self.history: deque[ProgressSample] = deque(maxlen=history_size)
        self._sampling_task: asyncio.Task | None = None
        self._pending_sends: set[asyncio.Task] = set()

        self._reset(video_id, lesson_id)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        viewer_id: UUID,
        course_id: UUID,
        video_id: str,
        sink: ProgressSink,
        **kwargs: Any,
    ) -> "ProgressTracker":
        """Build a tracker using the configured tracker tuning."""
        return cls(
            viewer_id,
            course_id,
            video_id,
            sink,
            poll_interval_ms=settings.tracker_poll_interval_ms,
            throttle_interval_ms=settings.tracker_throttle_interval_ms,
            notify_threshold=settings.progress_gate_threshold,
            history_size=settings.tracker_history_size,
            **kwargs,
        )

    def _reset(self, video_id: str, lesson_id: str | None) -> None:
        self.video_id = video_id
        self.lesson_id = lesson_id
        self.state = TrackerState.IDLE
        self.current_time = 0.0
        self.duration = 0.0
        self.percent = 0.0
        self.is_completed = False
        self.last_sent_percent = 0.0
        self.last_sent_at: float | None = None
        self.history.clear()

    # ==========================================================================
    # Player Signals
    # ==========================================================================

    def on_ready(self, player: PlayerHandle) -> None:
        """Store the player handle."""
        self.player = player

    def on_state_change(self, state_code: int) -> None:
        """Start or stop sampling from a player state code."""
        if state_code == PLAYER_STATE_PLAYING:
            if self.state != TrackerState.PLAYING:
                self.state = TrackerState.PLAYING
                self._start_sampling()
        elif self.state == TrackerState.PLAYING:
            self.state = TrackerState.PAUSED
            self._stop_sampling()

    def switch_video(self, video_id: str, lesson_id: str | None = None) -> None:
        """Track another video; nothing carries over from the previous one.

        Sends still in flight for the previous video are cancelled, so their
        results never reach on_progress_update.
        """
        self._stop_sampling()
        for task in self._pending_sends:
            task.cancel()
        previous = self.video_id
        self._reset(video_id, lesson_id)
        logger.info(
            "tracker_video_switched",
            viewer_id=str(self.viewer_id),
            previous_video_id=previous,
            video_id=video_id,
        )

    def close(self) -> None:
        """Stop sampling and release the player. Sends in flight still finish."""
        self._stop_sampling()
        self.state = TrackerState.IDLE
        self.player = None

    # ==========================================================================
    # Sampling
    # ==========================================================================

    def _start_sampling(self) -> None:
        self._stop_sampling()
        self._sampling_task = asyncio.create_task(self._sampling_loop())
        logger.debug("tracker_sampling_started", video_id=self.video_id)

    def _stop_sampling(self) -> None:
        if self._sampling_task is not None:
            self._sampling_task.cancel()
            self._sampling_task = None
            logger.debug("tracker_sampling_stopped", video_id=self.video_id)

    async def _sampling_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval_ms / 1000)
            try:
                self.tick()
            except Exception:
                logger.exception("tracker_tick_failed", video_id=self.video_id)

    def tick(self) -> ProgressSample | None:
        """Take one sample and send it if the throttle allows.

        Returns:
            The sample, or None when the cycle was skipped
        """
        if self.player is None:
            return None

        try:
            current_time = max(0.0, float(self.player.get_current_time() or 0.0))
            duration = float(self.player.get_duration() or 0.0)
        except Exception as e:
            logger.warning(
                "player_query_failed", video_id=self.video_id, error=str(e)
            )
            return None

        if duration <= 0:
            logger.debug("progress_sample_skipped", video_id=self.video_id)
            return None

        now = self.clock()
        percent = current_time / duration * 100

        self.current_time = current_time
        self.duration = duration
        self.percent = percent

        sample = ProgressSample(
            timestamp=int(now),
            current_time=current_time,
            duration=self.duration,
            percent=percent,
        )
        self.history.append(sample)

        if self._should_send(percent, now):
            sample.event = (
                "completed" if percent >= COMPLETED_EVENT_THRESHOLD else "progress"
            )
            self.last_sent_percent = percent
            self.last_sent_at = now
            self._dispatch(sample)

        if percent >= self.notify_threshold and not self.is_completed:
            self.is_completed = True
            logger.info(
                "video_completion_notified",
                viewer_id=str(self.viewer_id),
                video_id=self.video_id,
                percent=round(percent, 2),
            )
            if self.on_video_completed:
                self.on_video_completed(sample)

        return sample

    def _should_send(self, percent: float, now: float) -> bool:
        crossed = any(
            self.last_sent_percent < boundary <= percent
            for boundary in PROGRESS_BOUNDARIES
        )
        if crossed or self.last_sent_at is None:
            return True
        return now - self.last_sent_at >= self.throttle_interval_ms

    # ==========================================================================
    # Sending
    # ==========================================================================

    def _dispatch(self, sample: ProgressSample) -> None:
        update = UpdateVideoProgressRequest(
            viewer_id=self.viewer_id,
            course_id=self.course_id,
            video_id=self.video_id,
            lesson_id=self.lesson_id,
            current_time=sample.current_time,
            duration=sample.duration,
            percent=sample.percent,
            event=sample.event,
            timestamp=sample.timestamp,
        )
        task = asyncio.create_task(self._send(update))
        self._pending_sends.add(task)
        task.add_done_callback(self._pending_sends.discard)

    async def _send(self, update: UpdateVideoProgressRequest) -> None:
        try:
            result = await self.sink(update)
        except Exception as e:
            logger.warning(
                "progress_send_failed",
                viewer_id=str(self.viewer_id),
                video_id=update.video_id,
                percent=round(update.percent or 0.0, 2),
                error=str(e),
            )
            return

        if self.on_progress_update:
            try:
                self.on_progress_update(result)
            except Exception:
                logger.exception(
                    "progress_update_callback_failed", video_id=update.video_id
                )

    # ==========================================================================
    # Statistics
    # ==========================================================================

    def history_stats(self) -> dict[str, float | int]:
        """Summary of the in-memory history."""
        if not self.history:
            return {"total_samples": 0, "average_progress": 0.0, "max_progress": 0.0}

        percents = [sample.percent for sample in self.history]
        return {
            "total_samples": len(percents),
            "average_progress": round(sum(percents) / len(percents), 2),
            "max_progress": max(percents),
        }
