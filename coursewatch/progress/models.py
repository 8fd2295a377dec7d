"""Database models for lesson watch progress.

Cassandra table definitions for:
- Lesson progress: one row per (viewer, course, lesson)
- Watch counts: counter companion table, incremented in place per update

Both tables share the partition key (viewer_id, course_id) so a course
summary is a single-partition read.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID


# ==============================================================================
# Helper Functions
# ==============================================================================


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def compute_watch_percentage(watched_duration: float, total_duration: float) -> float:
    """Watched share of a video as a percentage clamped to [0, 100]."""
    if total_duration <= 0:
        return 0.0
    return max(0.0, min(100.0, watched_duration / total_duration * 100))


def format_duration(seconds: float) -> str:
    """Format seconds as ``m:ss``."""
    whole = int(seconds)
    return f"{whole // 60}:{whole % 60:02d}"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

LESSON_PROGRESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lesson_progress (
    viewer_id UUID,
    course_id UUID,
    lesson_id TEXT,
    video_id TEXT,
    watched_duration DOUBLE,
    total_duration DOUBLE,
    watch_percentage DOUBLE,
    is_completed BOOLEAN,
    completed_at TIMESTAMP,
    last_watched_at TIMESTAMP,
    quiz_completed BOOLEAN,
    quiz_score DOUBLE,
    quiz_passed BOOLEAN,
    PRIMARY KEY ((viewer_id, course_id), lesson_id)
) WITH CLUSTERING ORDER BY (lesson_id ASC)
"""

# Counter columns cannot live next to regular columns
LESSON_WATCH_COUNTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lesson_watch_counts (
    viewer_id UUID,
    course_id UUID,
    lesson_id TEXT,
    watch_count COUNTER,
    PRIMARY KEY ((viewer_id, course_id), lesson_id)
)
"""

PROGRESS_TABLES_CQL = [
    LESSON_PROGRESS_TABLE_CQL,
    LESSON_WATCH_COUNTS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class LessonProgress:
    """Watch progress of one viewer on one lesson.

    Attributes:
        viewer_id: Viewer UUID
        course_id: Course UUID
        lesson_id: Lesson identifier within the course
        video_id: Video backing the lesson
        watched_duration: Last reported playback position (seconds)
        total_duration: Video length (seconds)
        watch_percentage: Derived from the two durations, 0-100
        is_completed: Sticky completion flag
        completed_at: First completion timestamp
        last_watched_at: Timestamp of the latest stored sample
        watch_count: Number of stored updates
        quiz_completed: Quiz attempted for this lesson
        quiz_score: Quiz score 0-100
        quiz_passed: Quiz passed
    """

    def __init__(
        self,
        viewer_id: UUID,
        course_id: UUID,
        lesson_id: str,
        video_id: str,
        watched_duration: float = 0.0,
        total_duration: float = 0.0,
        watch_percentage: float | None = None,
        is_completed: bool = False,
        completed_at: datetime | None = None,
        last_watched_at: datetime | None = None,
        watch_count: int = 0,
        quiz_completed: bool = False,
        quiz_score: float | None = None,
        quiz_passed: bool = False,
    ):
        self.viewer_id = viewer_id
        self.course_id = course_id
        self.lesson_id = lesson_id
        self.video_id = video_id
        self.watched_duration = watched_duration
        self.total_duration = total_duration
        self.watch_percentage = (
            watch_percentage
            if watch_percentage is not None
            else compute_watch_percentage(watched_duration, total_duration)
        )
        self.is_completed = is_completed
        self.completed_at = ensure_utc_aware(completed_at)
        self.last_watched_at = ensure_utc_aware(last_watched_at) or datetime.now(UTC)
        self.watch_count = watch_count
        self.quiz_completed = quiz_completed
        self.quiz_score = quiz_score
        self.quiz_passed = quiz_passed

    @property
    def formatted_watch_percentage(self) -> str:
        return f"{self.watch_percentage:.1f}%"

    @property
    def formatted_watched_duration(self) -> str:
        return format_duration(self.watched_duration)

    @property
    def formatted_total_duration(self) -> str:
        return format_duration(self.total_duration)

    @classmethod
    def from_row(cls, row: Any, watch_count: int = 0) -> "LessonProgress":
        """Create LessonProgress from a Cassandra row and its counter value."""
        return cls(
            viewer_id=row.viewer_id,
            course_id=row.course_id,
            lesson_id=row.lesson_id,
            video_id=row.video_id or "",
            watched_duration=row.watched_duration or 0.0,
            total_duration=row.total_duration or 0.0,
            watch_percentage=row.watch_percentage or 0.0,
            is_completed=bool(row.is_completed),
            completed_at=row.completed_at,
            last_watched_at=row.last_watched_at,
            watch_count=watch_count,
            quiz_completed=bool(row.quiz_completed),
            quiz_score=row.quiz_score,
            quiz_passed=bool(row.quiz_passed),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "viewer_id": self.viewer_id,
            "course_id": self.course_id,
            "lesson_id": self.lesson_id,
            "video_id": self.video_id,
            "watched_duration": self.watched_duration,
            "total_duration": self.total_duration,
            "watch_percentage": self.watch_percentage,
            "is_completed": self.is_completed,
            "completed_at": self.completed_at,
            "last_watched_at": self.last_watched_at,
            "watch_count": self.watch_count,
            "quiz_completed": self.quiz_completed,
            "quiz_score": self.quiz_score,
            "quiz_passed": self.quiz_passed,
        }

    def __repr__(self) -> str:
        return (
            f"<LessonProgress viewer={self.viewer_id} lesson={self.lesson_id} "
            f"{self.formatted_watch_percentage} completed={self.is_completed}>"
        )
