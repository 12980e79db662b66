"""Pydantic schemas for burnout assessment endpoints."""

from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, Field

from app.pipelines.sessions import SessionRecord

from .common import ScoreSummaryView


class AssessmentQuestion(BaseModel):
    """One question of an assessment, with its answer state."""

    questionId: str = Field(..., description="Question identifier, e.g. work_std_1")
    prompt: str = Field(..., description="Question text shown to the user")
    kind: str = Field(..., description="likert, open_text or vlog")
    domain: Optional[str] = Field(None, description="work, personal or lifestyle")
    answered: bool = Field(False, description="Whether the answer and its required analyses are in")
    answer: Optional[str] = Field(None, description="Stored answer text")
    errors: List[str] = Field(default_factory=list, description="Analysis failures for this question")


class AssessmentSessionResponse(BaseModel):
    """Response schema describing a burnout assessment session."""

    sessionId: str = Field(..., description="Assessment session identifier")
    userId: str = Field(..., description="Owner of the session")
    createdAt: datetime = Field(..., description="Session creation timestamp")
    completed: bool = Field(..., description="Whether every question has been answered")
    questions: List[AssessmentQuestion] = Field(..., description="Questions in display order")
    result: Optional[ScoreSummaryView] = Field(None, description="Finalized result, once computed")

    @classmethod
    def from_record(cls, record: SessionRecord) -> "AssessmentSessionResponse":
        questions = []
        for unit in record.units:
            entry = record.entry(unit.unit_id)
            questions.append(
                AssessmentQuestion(
                    questionId=unit.unit_id,
                    prompt=unit.prompt,
                    kind=unit.kind.value,
                    domain=unit.domain.value if unit.domain else None,
                    answered=bool(entry and entry.answered),
                    answer=entry.text_response if entry else None,
                    errors=list(entry.errors.values()) if entry else [],
                )
            )
        return cls(
            sessionId=record.session_id,
            userId=record.user_id,
            createdAt=record.created_at,
            completed=record.all_units_answered,
            questions=questions,
            result=ScoreSummaryView.from_summary(record.summary) if record.summary else None,
        )


class RecordResponseRequest(BaseModel):
    """Answer to a single assessment question."""

    response: Optional[Union[int, str]] = Field(
        None, description="Likert rating (0-6) or free text; may be empty for vlog questions"
    )
    videoLocator: Optional[str] = Field(None, description="s3:// locator of the recorded video")
    audioLocator: Optional[str] = Field(
        None, description="s3://, http:// or https:// locator of the recorded audio"
    )


class RecordResponseResponse(BaseModel):
    recorded: bool = Field(..., description="Whether the answer was stored")
    complete: bool = Field(..., description="Whether the assessment is now complete")


class AssessmentStatusResponse(BaseModel):
    """Completion state of an assessment."""

    sessionId: str
    complete: bool
    outstanding: List[str] = Field(default_factory=list, description="Question ids still unanswered")
