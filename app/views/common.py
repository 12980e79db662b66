"""Common response schemas."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from app.pipelines.sessions import ScoreSummary


class ErrorResponse(BaseModel):
    detail: str
    code: Optional[str] = None


class CreateSessionRequest(BaseModel):
    """Request schema for opening a new session."""

    userId: str = Field(..., min_length=1, description="Identifier of the user the session belongs to")


class ScoreSummaryView(BaseModel):
    """Finalized result of a session."""

    score: float = Field(..., description="Burnout score (0-10) or congruence score (0-1)")
    explanation: str = Field("", description="Short rationale for the score")
    summary: str = Field("", description="Narrative summary of the session")
    computedAt: datetime = Field(..., description="When the session was finalized")
    details: Dict[str, Any] = Field(default_factory=dict, description="Finalizer-specific fields")

    @classmethod
    def from_summary(cls, summary: ScoreSummary) -> "ScoreSummaryView":
        return cls(
            score=summary.score,
            explanation=summary.explanation,
            summary=summary.summary,
            computedAt=summary.computed_at,
            details=dict(summary.details),
        )
