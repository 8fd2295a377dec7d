"""Exam gating module.

Provides:
- Gate decision before entering an exam (proceed or confirm)
- Resolution of the confirmation into a navigation target
"""

from .gate import (
    evaluate_exam_gate,
    resolve_confirmation,
    select_gating_lesson,
    snapshot_from_progress,
)
from .schemas import (
    ExamInfo,
    GateChoice,
    GateDecision,
    GateOutcome,
    LessonProgressSnapshot,
    NavigationTarget,
    PlaylistItem,
)


__all__ = [
    "ExamInfo",
    "GateChoice",
    "GateDecision",
    "GateOutcome",
    "LessonProgressSnapshot",
    "NavigationTarget",
    "PlaylistItem",
    "evaluate_exam_gate",
    "resolve_confirmation",
    "select_gating_lesson",
    "snapshot_from_progress",
]
