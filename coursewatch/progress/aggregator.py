"""Course progress aggregation.

A course summary is recomputed on every read from the lesson rows of one
(viewer, course) pair; nothing here is stored.
"""

from collections.abc import Iterable

from .models import LessonProgress
from .schemas import CourseProgressSummary, LessonProgressResponse


def summarize_course_progress(
    records: Iterable[LessonProgress],
) -> CourseProgressSummary:
    """Build a CourseProgressSummary from lesson progress records.

    ``overall_progress`` is total watched time over total duration, rounded
    to two decimals, and 0 when there is no duration to divide by.
    """
    lessons = list(records)
    if not lessons:
        return CourseProgressSummary.empty()

    total_watch_time = sum(lp.watched_duration or 0 for lp in lessons)
    total_duration = sum(lp.total_duration or 0 for lp in lessons)
    overall = total_watch_time / total_duration * 100 if total_duration > 0 else 0.0

    return CourseProgressSummary(
        total_lessons=len(lessons),
        completed_lessons=sum(1 for lp in lessons if lp.is_completed),
        total_watch_time=total_watch_time,
        total_duration=total_duration,
        overall_progress=round(overall, 2),
        lessons=[LessonProgressResponse.from_entity(lp) for lp in lessons],
    )
