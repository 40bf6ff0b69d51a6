"""Interview API schemas: request/response contracts for the HTTP surface."""

from datetime import datetime
from typing import Annotated, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, RootModel, field_validator

from vision_builder.schemas.vision import RewriteMode, VersionHistoryEntry


class SessionResponse(BaseModel):
    """Interview session with its current stage."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    stage: int
    created_at: datetime
    updated_at: datetime
    has_analysis: bool | None = None


class AnswerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    question_number: int
    answer_text: str
    updated_at: datetime | None = None


class QuestionStatus(BaseModel):
    """One question of the catalogue with the session's answer state."""

    number: int
    text: str
    label: str
    answered: bool


class SessionAnswersResponse(BaseModel):
    session_id: UUID
    stage: int
    answers: list[AnswerResponse]
    questions: list[QuestionStatus]


class AnswerUpsertRequest(BaseModel):
    answer_text: str = Field(..., min_length=1)

    @field_validator("answer_text")
    @classmethod
    def reject_blank(cls, v: str) -> str:
        """Blank answers are cleared with DELETE, never stored."""
        if not v.strip():
            raise ValueError("answer_text must not be blank")
        return v


class StageRequest(BaseModel):
    """Stepper jump. Range is checked by the tracker so the error shape matches."""

    stage: int


class AdvanceResponse(BaseModel):
    """Result of "next": either the new stage or completion."""

    status: Literal["continue", "complete"]
    stage: int


class AnalysisResponse(BaseModel):
    """Latest analysis with normalized metadata."""

    id: UUID
    session_id: UUID
    vision_inspirational: str
    vision_measurable: str
    keywords: list[str]
    insights: list[str]
    notes: str
    processing_time_ms: int | None = None
    version_history: list[VersionHistoryEntry]
    created_at: datetime


class RewriteResponse(BaseModel):
    """Entry appended by a rewrite plus the resulting history length."""

    entry: VersionHistoryEntry
    history_length: int


# ---------------------------------------------------------------------------
# Tagged action requests (POST /interview/actions)
# ---------------------------------------------------------------------------


class CreateSessionAction(BaseModel):
    action: Literal["create-session"]


class AnalyzeAction(BaseModel):
    action: Literal["analyze"]
    session_id: UUID


class RewriteAction(BaseModel):
    action: Literal["rewrite"]
    session_id: UUID
    mode: RewriteMode


InterviewAction = Annotated[
    CreateSessionAction | AnalyzeAction | RewriteAction,
    Field(discriminator="action"),
]


class InterviewActionRequest(RootModel[InterviewAction]):
    """Request body of the action endpoint, dispatched on ``action``."""
