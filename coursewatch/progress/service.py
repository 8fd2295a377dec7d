"""Lesson progress service layer.

Business logic for:
- Upserting progress samples with derived percentage and sticky completion
- Course progress summaries (derived on read)
- Quiz results attached to lesson progress
- Administrative progress resets
"""

import json
import math
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

import structlog

from coursewatch.core.redis import progress_channel

from .aggregator import summarize_course_progress
from .models import LessonProgress, compute_watch_percentage
from .schemas import CourseProgressSummary


if TYPE_CHECKING:
    from cassandra.cluster import Session
    from redis.asyncio import Redis

logger = structlog.get_logger(__name__)

# Stored lessons complete at 90% watched
COMPLETION_THRESHOLD = 90.0


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class ProgressError(Exception):
    """Base progress error."""

    def __init__(self, message: str, code: str = "progress_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class ProgressValidationError(ProgressError):
    """Malformed identifiers or durations; nothing was written."""

    def __init__(self, message: str):
        super().__init__(message, "validation_error")


class LessonProgressNotFoundError(ProgressError):
    """Lesson progress not found."""

    def __init__(self, message: str = "Lesson progress not found"):
        super().__init__(message, "progress_not_found")


# ==============================================================================
# Validation Helpers
# ==============================================================================


def _require_uuid(value: Any, name: str) -> UUID:
    if isinstance(value, UUID):
        return value
    if isinstance(value, str):
        try:
            return UUID(value)
        except ValueError:
            pass
    raise ProgressValidationError(f"Invalid {name} format")


def _require_text(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ProgressValidationError(f"{name} is required")
    return value.strip()


def _require_number(value: Any, name: str) -> float:
    if (
        isinstance(value, bool)
        or not isinstance(value, int | float)
        or not math.isfinite(value)
    ):
        raise ProgressValidationError(f"{name} must be a number")
    return float(value)


# ==============================================================================
# Progress Service
# ==============================================================================


class ProgressService:
    """Service for lesson watch progress."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        redis: "Redis | None" = None,
        completion_threshold: float = COMPLETION_THRESHOLD,
    ):
        """Initialize with Cassandra session and optional Redis client."""
        self.session = session
        self.keyspace = keyspace
        self.redis = redis
        self.completion_threshold = completion_threshold
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_lesson_progress = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.lesson_progress
            WHERE viewer_id = ? AND course_id = ? AND lesson_id = ?
        """)

        self._get_course_lesson_progress = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.lesson_progress
            WHERE viewer_id = ? AND course_id = ?
        """)

        # UPDATE creates the row when it does not exist yet
        self._update_lesson_sample = self.session.prepare(f"""
            UPDATE {self.keyspace}.lesson_progress
            SET video_id = ?, watched_duration = ?, total_duration = ?,
                watch_percentage = ?, last_watched_at = ?
            WHERE viewer_id = ? AND course_id = ? AND lesson_id = ?
        """)

        # Set-once: only the first completed sample gets applied
        self._mark_lesson_completed = self.session.prepare(f"""
            UPDATE {self.keyspace}.lesson_progress
            SET is_completed = true, completed_at = ?
            WHERE viewer_id = ? AND course_id = ? AND lesson_id = ?
            IF completed_at = null
        """)

        self._update_quiz_result = self.session.prepare(f"""
            UPDATE {self.keyspace}.lesson_progress
            SET quiz_completed = true, quiz_score = ?, quiz_passed = ?
            WHERE viewer_id = ? AND course_id = ? AND lesson_id = ?
        """)

        # Deletes go through Paxos like the completion write
        self._delete_lesson_progress = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.lesson_progress
            WHERE viewer_id = ? AND course_id = ? AND lesson_id = ?
            IF EXISTS
        """)

        # Watch counts
        self._get_watch_count = self.session.prepare(f"""
            SELECT watch_count FROM {self.keyspace}.lesson_watch_counts
            WHERE viewer_id = ? AND course_id = ? AND lesson_id = ?
        """)

        self._get_course_watch_counts = self.session.prepare(f"""
            SELECT lesson_id, watch_count FROM {self.keyspace}.lesson_watch_counts
            WHERE viewer_id = ? AND course_id = ?
        """)

        self._increment_watch_count = self.session.prepare(f"""
            UPDATE {self.keyspace}.lesson_watch_counts
            SET watch_count = watch_count + 1
            WHERE viewer_id = ? AND course_id = ? AND lesson_id = ?
        """)

        # Counters cannot be reused reliably after DELETE, so resets subtract
        self._decrement_watch_count = self.session.prepare(f"""
            UPDATE {self.keyspace}.lesson_watch_counts
            SET watch_count = watch_count - ?
            WHERE viewer_id = ? AND course_id = ? AND lesson_id = ?
        """)

    # ==========================================================================
    # Progress Updates
    # ==========================================================================

    async def upsert_lesson_progress(
        self,
        viewer_id: UUID | str,
        course_id: UUID | str,
        lesson_id: str,
        video_id: str,
        watched_duration: float,
        total_duration: float,
    ) -> LessonProgress:
        """Store the latest progress sample for a lesson.

        The percentage is recomputed from the durations on every call. The
        watch count is incremented in place by the store. Completion is set
        once, the first time the percentage reaches the threshold, and is
        never cleared by later samples.

        Args:
            viewer_id: Viewer UUID
            course_id: Course UUID
            lesson_id: Lesson identifier
            video_id: Video identifier
            watched_duration: Reported playback position in seconds (>= 0)
            total_duration: Video length in seconds (> 0)

        Returns:
            The stored LessonProgress

        Raises:
            ProgressValidationError: On malformed input, before any write
        """
        viewer_id = _require_uuid(viewer_id, "viewer_id")
        course_id = _require_uuid(course_id, "course_id")
        lesson_id = _require_text(lesson_id, "lesson_id")
        video_id = _require_text(video_id, "video_id")
        watched_duration = _require_number(watched_duration, "watched_duration")
        total_duration = _require_number(total_duration, "total_duration")
        if watched_duration < 0:
            raise ProgressValidationError("watched_duration must be non-negative")
        if total_duration <= 0:
            raise ProgressValidationError("total_duration must be positive")

        now = datetime.now(UTC)
        key = [viewer_id, course_id, lesson_id]
        percentage = compute_watch_percentage(watched_duration, total_duration)

        await self.session.aexecute(
            self._update_lesson_sample,
            [video_id, watched_duration, total_duration, percentage, now, *key],
        )
        await self.session.aexecute(self._increment_watch_count, key)

        completed_now = False
        if percentage >= self.completion_threshold:
            result = await self.session.aexecute(
                self._mark_lesson_completed, [now, *key]
            )
            completed_now = bool(result.was_applied)
            if completed_now:
                logger.info(
                    "lesson_auto_completed",
                    viewer_id=str(viewer_id),
                    course_id=str(course_id),
                    lesson_id=lesson_id,
                    percentage=round(percentage, 2),
                )
                await self._publish_completion(viewer_id, course_id, lesson_id, now)

        progress = await self.get_lesson_progress(viewer_id, course_id, lesson_id)
        if progress is None:
            # Row not visible yet on this replica; report what was written
            progress = LessonProgress(
                viewer_id=viewer_id,
                course_id=course_id,
                lesson_id=lesson_id,
                video_id=video_id,
                watched_duration=watched_duration,
                total_duration=total_duration,
                watch_percentage=percentage,
                is_completed=completed_now,
                completed_at=now if completed_now else None,
                last_watched_at=now,
                watch_count=1,
            )

        logger.debug(
            "lesson_progress_upserted",
            viewer_id=str(viewer_id),
            lesson_id=lesson_id,
            percentage=round(percentage, 2),
            watch_count=progress.watch_count,
        )
        return progress

    async def _publish_completion(
        self,
        viewer_id: UUID,
        course_id: UUID,
        lesson_id: str,
        completed_at: datetime,
    ) -> None:
        """Publish a lesson_completed event on the viewer's channel."""
        if not self.redis:
            return

        message = {
            "type": "lesson_completed",
            "data": {
                "viewer_id": str(viewer_id),
                "course_id": str(course_id),
                "lesson_id": lesson_id,
                "completed_at": completed_at.isoformat(),
            },
        }
        try:
            await self.redis.publish(progress_channel(str(viewer_id)), json.dumps(message))
        except Exception as e:
            logger.warning(
                "progress_event_publish_failed",
                viewer_id=str(viewer_id),
                lesson_id=lesson_id,
                error=str(e),
            )

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def get_lesson_progress(
        self,
        viewer_id: UUID | str,
        course_id: UUID | str,
        lesson_id: str,
    ) -> LessonProgress | None:
        """Get progress for a specific lesson."""
        viewer_id = _require_uuid(viewer_id, "viewer_id")
        course_id = _require_uuid(course_id, "course_id")
        lesson_id = _require_text(lesson_id, "lesson_id")
        key = [viewer_id, course_id, lesson_id]

        result = await self.session.aexecute(self._get_lesson_progress, key)
        row = result.one()
        if not row:
            return None

        count_result = await self.session.aexecute(self._get_watch_count, key)
        count_row = count_result.one()
        return LessonProgress.from_row(
            row, watch_count=count_row.watch_count if count_row else 0
        )

    async def get_course_progress(
        self,
        viewer_id: UUID | str,
        course_id: UUID | str,
    ) -> CourseProgressSummary:
        """Summarize a viewer's progress over all lessons of a course.

        Returns a zeroed summary when the viewer has no lesson rows.

        Raises:
            ProgressValidationError: If an identifier is malformed
        """
        viewer_id = _require_uuid(viewer_id, "viewer_id")
        course_id = _require_uuid(course_id, "course_id")

        lessons = await self._get_all_lesson_progress(viewer_id, course_id)
        summary = summarize_course_progress(lessons)

        logger.debug(
            "course_progress_calculated",
            viewer_id=str(viewer_id),
            course_id=str(course_id),
            total_lessons=summary.total_lessons,
            completed_lessons=summary.completed_lessons,
            overall_progress=summary.overall_progress,
        )
        return summary

    async def _get_all_lesson_progress(
        self,
        viewer_id: UUID,
        course_id: UUID,
    ) -> list[LessonProgress]:
        """Get all lesson rows of a course with their watch counts."""
        rows = await self.session.aexecute(
            self._get_course_lesson_progress, [viewer_id, course_id]
        )
        count_rows = await self.session.aexecute(
            self._get_course_watch_counts, [viewer_id, course_id]
        )
        counts = {row.lesson_id: row.watch_count or 0 for row in count_rows}
        return [
            LessonProgress.from_row(row, watch_count=counts.get(row.lesson_id, 0))
            for row in rows
        ]

    # ==========================================================================
    # Quiz Results
    # ==========================================================================

    async def record_quiz_result(
        self,
        viewer_id: UUID | str,
        course_id: UUID | str,
        lesson_id: str,
        score: float,
        passed: bool,
    ) -> LessonProgress:
        """Attach a quiz outcome to an existing lesson progress record.

        Raises:
            ProgressValidationError: If the score is outside 0-100
            LessonProgressNotFoundError: If the lesson has no progress yet
        """
        score = _require_number(score, "score")
        if not 0 <= score <= 100:
            raise ProgressValidationError("score must be between 0 and 100")

        progress = await self.get_lesson_progress(viewer_id, course_id, lesson_id)
        if progress is None:
            raise LessonProgressNotFoundError

        await self.session.aexecute(
            self._update_quiz_result,
            [score, passed, progress.viewer_id, progress.course_id, progress.lesson_id],
        )

        progress.quiz_completed = True
        progress.quiz_score = score
        progress.quiz_passed = passed

        logger.info(
            "lesson_quiz_recorded",
            viewer_id=str(progress.viewer_id),
            lesson_id=progress.lesson_id,
            score=score,
            passed=passed,
        )
        return progress

    # ==========================================================================
    # Administrative Resets
    # ==========================================================================

    async def reset_lesson_progress(
        self,
        viewer_id: UUID | str,
        course_id: UUID | str,
        lesson_id: str,
    ) -> bool:
        """Delete a lesson progress record and zero its watch count.

        Returns:
            True if a record existed
        """
        progress = await self.get_lesson_progress(viewer_id, course_id, lesson_id)
        if progress is None:
            return False

        key = [progress.viewer_id, progress.course_id, progress.lesson_id]
        await self.session.aexecute(self._delete_lesson_progress, key)
        if progress.watch_count:
            await self.session.aexecute(
                self._decrement_watch_count, [progress.watch_count, *key]
            )

        logger.info(
            "lesson_progress_reset",
            viewer_id=str(progress.viewer_id),
            course_id=str(progress.course_id),
            lesson_id=progress.lesson_id,
        )
        return True

    async def reset_course_progress(
        self,
        viewer_id: UUID | str,
        course_id: UUID | str,
    ) -> int:
        """Delete every lesson record of a course for a viewer.

        Returns:
            Number of lesson records removed
        """
        viewer_id = _require_uuid(viewer_id, "viewer_id")
        course_id = _require_uuid(course_id, "course_id")

        lessons = await self._get_all_lesson_progress(viewer_id, course_id)
        for lesson in lessons:
            await self.session.aexecute(
                self._delete_lesson_progress,
                [viewer_id, course_id, lesson.lesson_id],
            )
            if lesson.watch_count:
                await self.session.aexecute(
                    self._decrement_watch_count,
                    [lesson.watch_count, viewer_id, course_id, lesson.lesson_id],
                )

        logger.info(
            "course_progress_reset",
            viewer_id=str(viewer_id),
            course_id=str(course_id),
            lessons_removed=len(lessons),
        )
        return len(lessons)
