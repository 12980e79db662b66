"""Pydantic schemas used as views in the MVC architecture."""

from .burnout import (
    AssessmentQuestion,
    AssessmentSessionResponse,
    AssessmentStatusResponse,
    RecordResponseRequest,
    RecordResponseResponse,
)
from .cbt import (
    CbtAudioMessageRequest,
    CbtMessageRequest,
    CbtReplyResponse,
    CbtSessionResponse,
    SessionInsightsResponse,
    TextAnalysisView,
)
from .common import CreateSessionRequest, ErrorResponse, ScoreSummaryView

__all__ = [
    "AssessmentQuestion",
    "AssessmentSessionResponse",
    "AssessmentStatusResponse",
    "CbtAudioMessageRequest",
    "CbtMessageRequest",
    "CbtReplyResponse",
    "CbtSessionResponse",
    "CreateSessionRequest",
    "ErrorResponse",
    "RecordResponseRequest",
    "RecordResponseResponse",
    "ScoreSummaryView",
    "SessionInsightsResponse",
    "TextAnalysisView",
]
