"""Lesson progress module.

Provides:
- Progress sample upserts with derived percentage and sticky completion
- Course progress aggregation (derived on read)
- Quiz results and administrative resets
"""

from .aggregator import summarize_course_progress
from .models import PROGRESS_TABLES_CQL, LessonProgress
from .service import (
    LessonProgressNotFoundError,
    ProgressError,
    ProgressService,
    ProgressValidationError,
)


__all__ = [
    "PROGRESS_TABLES_CQL",
    "LessonProgress",
    "LessonProgressNotFoundError",
    "ProgressError",
    "ProgressService",
    "ProgressValidationError",
    "summarize_course_progress",
]
