"""Pydantic schemas for the exam gate."""

from enum import Enum

from pydantic import BaseModel, Field


class GateOutcome(str, Enum):
    """Gate decision before entering an exam."""

    PROCEED = "proceed"
    CONFIRM = "confirm"


class GateChoice(str, Enum):
    """Answer to the confirmation prompt."""

    GO_BACK = "go_back"
    PROCEED_ANYWAY = "proceed_anyway"


class NavigationTarget(str, Enum):
    """Where the caller navigates once the gate is resolved."""

    EXAM = "exam"
    VIDEO = "video"


class ExamInfo(BaseModel):
    """Exam metadata shown in the confirmation prompt."""

    title: str = Field(..., min_length=1)
    description: str | None = None


class PlaylistItem(BaseModel):
    """Playlist entry of a course (video lessons, exams, other content)."""

    lesson_id: str = Field(..., min_length=1)
    kind: str = Field("video", description="video, exam, text, ...")


class LessonProgressSnapshot(BaseModel):
    """Progress of the gating lesson at decision time."""

    lesson_id: str
    percent: float = Field(0.0, ge=0, le=100)
    completed: bool = False


class ConfirmationPrompt(BaseModel):
    """Confirmation shown when the gating video is not watched enough."""

    exam_title: str
    exam_description: str | None = None
    percent: float
    threshold: float
    choices: list[GateChoice] = Field(
        default_factory=lambda: [GateChoice.GO_BACK, GateChoice.PROCEED_ANYWAY]
    )


class GateDecision(BaseModel):
    """Result of evaluating the exam gate."""

    outcome: GateOutcome
    lesson_id: str | None = None
    confirmation: ConfirmationPrompt | None = None
