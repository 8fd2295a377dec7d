"""Pydantic schemas for lesson progress.

Request and response models for:
- Progress samples posted by the tracker
- Lesson progress records
- Course progress summaries
- Quiz results and admin resets
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from .models import LessonProgress, format_duration


# ==============================================================================
# Progress Sample Schemas
# ==============================================================================


class UpdateVideoProgressRequest(BaseModel):
    """Progress sample sent by the tracker (camelCase on the wire).

    ``currentTime`` is stored as the watched duration and ``duration`` as the
    total duration. ``percent`` is informational: the stored percentage is
    always recomputed from the durations.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    viewer_id: UUID = Field(..., description="Viewer UUID")
    course_id: UUID = Field(..., description="Course UUID")
    video_id: str = Field(..., min_length=1, description="Video identifier")
    lesson_id: str | None = Field(
        None, min_length=1, description="Lesson identifier (defaults to videoId)"
    )
    current_time: float = Field(..., ge=0, description="Playback position (seconds)")
    duration: float = Field(..., gt=0, description="Video duration (seconds)")
    percent: float | None = Field(None, description="Client-side percentage")
    event: Literal["progress", "completed"] = Field(
        "progress", description="Event kind assigned by the tracker"
    )
    timestamp: int | None = Field(None, description="Client epoch milliseconds")

    @property
    def resolved_lesson_id(self) -> str:
        return self.lesson_id or self.video_id


class LessonProgressResponse(BaseModel):
    """Stored lesson progress."""

    model_config = ConfigDict(from_attributes=True)

    viewer_id: UUID
    course_id: UUID
    lesson_id: str
    video_id: str
    watched_duration: float
    total_duration: float
    watch_percentage: float = Field(description="0-100 percentage")
    is_completed: bool
    completed_at: datetime | None = None
    last_watched_at: datetime | None = None
    watch_count: int = 0
    quiz_completed: bool = False
    quiz_score: float | None = None
    quiz_passed: bool = False

    @computed_field
    @property
    def formatted_watch_percentage(self) -> str:
        return f"{self.watch_percentage:.1f}%"

    @computed_field
    @property
    def formatted_watched_duration(self) -> str:
        return format_duration(self.watched_duration)

    @computed_field
    @property
    def formatted_total_duration(self) -> str:
        return format_duration(self.total_duration)

    @classmethod
    def from_entity(cls, entity: LessonProgress) -> "LessonProgressResponse":
        """Create response from entity."""
        return cls(
            viewer_id=entity.viewer_id,
            course_id=entity.course_id,
            lesson_id=entity.lesson_id,
            video_id=entity.video_id,
            watched_duration=entity.watched_duration,
            total_duration=entity.total_duration,
            watch_percentage=entity.watch_percentage,
            is_completed=entity.is_completed,
            completed_at=entity.completed_at,
            last_watched_at=entity.last_watched_at,
            watch_count=entity.watch_count,
            quiz_completed=entity.quiz_completed,
            quiz_score=entity.quiz_score,
            quiz_passed=entity.quiz_passed,
        )


# ==============================================================================
# Course Summary Schemas
# ==============================================================================


class CourseProgressSummary(BaseModel):
    """Course-level progress derived from the stored lesson rows."""

    total_lessons: int = 0
    completed_lessons: int = 0
    total_watch_time: float = 0.0
    total_duration: float = 0.0
    overall_progress: float = Field(0.0, description="0-100, two decimals")
    lessons: list[LessonProgressResponse] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> "CourseProgressSummary":
        """Zeroed summary (no rows, or a failed read on the client)."""
        return cls()


# ==============================================================================
# Quiz Schemas
# ==============================================================================


class RecordQuizResultRequest(BaseModel):
    """Quiz outcome attached to a lesson progress record."""

    viewer_id: UUID = Field(..., description="Viewer UUID")
    course_id: UUID = Field(..., description="Course UUID")
    lesson_id: str = Field(..., min_length=1, description="Lesson identifier")
    score: float = Field(..., ge=0, le=100, description="Quiz score 0-100")
    passed: bool = Field(..., description="Whether the quiz was passed")


# ==============================================================================
# Generic Response
# ==============================================================================


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str
    success: bool = True
