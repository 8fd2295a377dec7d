"""Lesson progress API endpoints.

Provides routes for:
- Video progress samples (throttled by the tracker)
- Lesson and course progress queries
- Quiz results
"""

from uuid import UUID

from fastapi import APIRouter, Query, status

from coursewatch.core.context import set_viewer_id

from .dependencies import ProgressServiceDep, handle_progress_error
from .schemas import (
    CourseProgressSummary,
    LessonProgressResponse,
    RecordQuizResultRequest,
    UpdateVideoProgressRequest,
)
from .service import LessonProgressNotFoundError, ProgressError


router = APIRouter(prefix="/v1/progress", tags=["progress"])


# ==============================================================================
# Video Progress Endpoints
# ==============================================================================


@router.post(
    "/video",
    response_model=LessonProgressResponse,
    status_code=status.HTTP_200_OK,
    summary="Record a video progress sample",
)
async def update_video_progress(
    data: UpdateVideoProgressRequest,
    progress_service: ProgressServiceDep,
) -> LessonProgressResponse:
    """Store a progress sample sent by the tracker.

    Auto-completes the lesson once the stored percentage reaches the
    completion threshold. The client-side percentage is ignored.
    """
    set_viewer_id(str(data.viewer_id))

    try:
        progress = await progress_service.upsert_lesson_progress(
            viewer_id=data.viewer_id,
            course_id=data.course_id,
            lesson_id=data.resolved_lesson_id,
            video_id=data.video_id,
            watched_duration=data.current_time,
            total_duration=data.duration,
        )
        return LessonProgressResponse.from_entity(progress)
    except ProgressError as e:
        raise handle_progress_error(e) from e


# ==============================================================================
# Progress Query Endpoints
# ==============================================================================


@router.get(
    "/course/{course_id}/{viewer_id}",
    response_model=CourseProgressSummary,
    summary="Get course progress summary",
)
async def get_course_progress(
    course_id: UUID,
    viewer_id: UUID,
    progress_service: ProgressServiceDep,
) -> CourseProgressSummary:
    """Summarize a viewer's progress over every lesson of a course."""
    set_viewer_id(str(viewer_id))

    try:
        return await progress_service.get_course_progress(viewer_id, course_id)
    except ProgressError as e:
        raise handle_progress_error(e) from e


@router.get(
    "/lesson/{lesson_id}",
    response_model=LessonProgressResponse,
    summary="Get lesson progress",
)
async def get_lesson_progress(
    lesson_id: str,
    progress_service: ProgressServiceDep,
    viewer_id: UUID = Query(..., alias="viewerId", description="Viewer UUID"),
    course_id: UUID = Query(..., alias="courseId", description="Course UUID"),
) -> LessonProgressResponse:
    """Get the stored progress record of a single lesson."""
    set_viewer_id(str(viewer_id))

    try:
        progress = await progress_service.get_lesson_progress(
            viewer_id, course_id, lesson_id
        )
        if progress is None:
            raise LessonProgressNotFoundError
        return LessonProgressResponse.from_entity(progress)
    except ProgressError as e:
        raise handle_progress_error(e) from e


# ==============================================================================
# Quiz Endpoints
# ==============================================================================


@router.post(
    "/lesson/quiz",
    response_model=LessonProgressResponse,
    summary="Record a lesson quiz result",
)
async def record_quiz_result(
    data: RecordQuizResultRequest,
    progress_service: ProgressServiceDep,
) -> LessonProgressResponse:
    """Attach a quiz outcome to a lesson the viewer has already started."""
    set_viewer_id(str(data.viewer_id))

    try:
        progress = await progress_service.record_quiz_result(
            viewer_id=data.viewer_id,
            course_id=data.course_id,
            lesson_id=data.lesson_id,
            score=data.score,
            passed=data.passed,
        )
        return LessonProgressResponse.from_entity(progress)
    except ProgressError as e:
        raise handle_progress_error(e) from e
