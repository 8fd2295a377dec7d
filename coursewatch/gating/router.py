"""Exam gate API endpoint."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from coursewatch.config import Settings, get_settings
from coursewatch.core.context import set_viewer_id
from coursewatch.progress.dependencies import ProgressServiceDep, handle_progress_error
from coursewatch.progress.service import ProgressError

from .gate import evaluate_exam_gate, select_gating_lesson, snapshot_from_progress
from .schemas import ExamInfo, GateDecision, LessonProgressSnapshot, PlaylistItem


router = APIRouter(prefix="/v1/exam-gate", tags=["exam-gate"])


@router.get(
    "",
    response_model=GateDecision,
    summary="Evaluate the exam gate",
)
async def get_exam_gate(
    progress_service: ProgressServiceDep,
    settings: Annotated[Settings, Depends(get_settings)],
    viewer_id: UUID = Query(..., alias="viewerId", description="Viewer UUID"),
    course_id: UUID = Query(..., alias="courseId", description="Course UUID"),
    exam_title: str = Query(..., alias="examTitle", min_length=1),
    exam_description: str | None = Query(None, alias="examDescription"),
    lesson_id: str | None = Query(
        None, alias="lessonId", description="Gating lesson (explicit)"
    ),
    video_lesson_ids: list[str] | None = Query(
        None,
        alias="videoLessonIds",
        description="Video lessons of the playlist, in order; the last one gates",
    ),
) -> GateDecision:
    """Decide whether the viewer may go straight to the exam.

    The gating lesson is ``lessonId`` when given, otherwise the last entry
    of ``videoLessonIds``. No gating lesson means the viewer proceeds.
    A lesson with no stored progress counts as unwatched.
    """
    set_viewer_id(str(viewer_id))
    exam = ExamInfo(title=exam_title, description=exam_description)

    gating_lesson = lesson_id or select_gating_lesson(
        PlaylistItem(lesson_id=item, kind="video") for item in video_lesson_ids or []
    )
    if gating_lesson is None:
        return evaluate_exam_gate(None, exam, settings.progress_gate_threshold)

    try:
        progress = await progress_service.get_lesson_progress(
            viewer_id, course_id, gating_lesson
        )
    except ProgressError as e:
        raise handle_progress_error(e) from e

    snapshot = (
        snapshot_from_progress(progress)
        if progress
        else LessonProgressSnapshot(lesson_id=gating_lesson)
    )
    return evaluate_exam_gate(snapshot, exam, settings.progress_gate_threshold)
