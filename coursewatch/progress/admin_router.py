"""Admin API routes for lesson progress.

Endpoints for (MASTER API KEY ONLY):
- DELETE /v1/admin/progress/{viewer_id}/{course_id} - Reset a course
- DELETE /v1/admin/progress/{viewer_id}/{course_id}/{lesson_id} - Reset a lesson
"""

from uuid import UUID

from fastapi import APIRouter

from .dependencies import MasterApiKey, ProgressServiceDep, handle_progress_error
from .schemas import MessageResponse
from .service import LessonProgressNotFoundError, ProgressError


router = APIRouter(
    prefix="/v1/admin/progress",
    tags=["admin-progress"],
)


@router.delete(
    "/{viewer_id}/{course_id}",
    response_model=MessageResponse,
    summary="Reset course progress",
    description="Delete every lesson progress record of a viewer in a course.",
)
async def reset_course_progress(
    viewer_id: UUID,
    course_id: UUID,
    _api_key: MasterApiKey,
    progress_service: ProgressServiceDep,
) -> MessageResponse:
    """Reset a viewer's progress in a course."""
    removed = await progress_service.reset_course_progress(viewer_id, course_id)
    return MessageResponse(message=f"Removed {removed} lesson progress records")


@router.delete(
    "/{viewer_id}/{course_id}/{lesson_id}",
    response_model=MessageResponse,
    summary="Reset lesson progress",
)
async def reset_lesson_progress(
    viewer_id: UUID,
    course_id: UUID,
    lesson_id: str,
    _api_key: MasterApiKey,
    progress_service: ProgressServiceDep,
) -> MessageResponse:
    """Reset a viewer's progress on one lesson."""
    try:
        if not await progress_service.reset_lesson_progress(
            viewer_id, course_id, lesson_id
        ):
            raise LessonProgressNotFoundError
    except ProgressError as e:
        raise handle_progress_error(e) from e
    return MessageResponse(message="Lesson progress reset")
