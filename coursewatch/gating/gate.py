"""Exam gate.

Decides, before navigating to an exam, whether the prerequisite video has
been watched enough. The gate never blocks: when the threshold is unmet it
interposes a confirmation, and the viewer may go back or proceed anyway.
Nothing here reads or writes progress.
"""

from collections.abc import Iterable

from coursewatch.progress.models import LessonProgress

from .schemas import (
    ConfirmationPrompt,
    ExamInfo,
    GateChoice,
    GateDecision,
    GateOutcome,
    LessonProgressSnapshot,
    NavigationTarget,
    PlaylistItem,
)


GATE_THRESHOLD = 70.0


def snapshot_from_progress(progress: LessonProgress) -> LessonProgressSnapshot:
    """Reduce a stored record to what the gate looks at."""
    return LessonProgressSnapshot(
        lesson_id=progress.lesson_id,
        percent=progress.watch_percentage,
        completed=progress.is_completed,
    )


def select_gating_lesson(items: Iterable[PlaylistItem]) -> str | None:
    """Return the lesson id of the last video in a playlist, if any."""
    gating = None
    for item in items:
        if item.kind == "video":
            gating = item.lesson_id
    return gating


def evaluate_exam_gate(
    progress: LessonProgressSnapshot | None,
    exam: ExamInfo,
    threshold: float = GATE_THRESHOLD,
) -> GateDecision:
    """Decide whether the viewer goes straight to the exam.

    Args:
        progress: Gating lesson progress, or None when the course has no
            prerequisite video
        exam: Exam metadata for the confirmation prompt
        threshold: Minimum watched percentage

    Returns:
        PROCEED when there is no prerequisite, the lesson is completed or
        the percentage reaches the threshold; CONFIRM otherwise
    """
    if progress is None:
        return GateDecision(outcome=GateOutcome.PROCEED)

    if progress.completed or progress.percent >= threshold:
        return GateDecision(outcome=GateOutcome.PROCEED, lesson_id=progress.lesson_id)

    return GateDecision(
        outcome=GateOutcome.CONFIRM,
        lesson_id=progress.lesson_id,
        confirmation=ConfirmationPrompt(
            exam_title=exam.title,
            exam_description=exam.description,
            percent=round(progress.percent, 2),
            threshold=threshold,
        ),
    )


def resolve_confirmation(
    decision: GateDecision,
    choice: GateChoice | None = None,
) -> NavigationTarget:
    """Map a gate decision and the viewer's answer to a navigation target.

    A PROCEED decision ignores the choice. A CONFIRM decision requires one.

    Raises:
        ValueError: If a confirmation is pending and no choice was given
    """
    if decision.outcome == GateOutcome.PROCEED:
        return NavigationTarget.EXAM

    if choice is None:
        msg = "A choice is required to resolve a pending confirmation"
        raise ValueError(msg)

    if choice == GateChoice.PROCEED_ANYWAY:
        return NavigationTarget.EXAM
    return NavigationTarget.VIDEO
