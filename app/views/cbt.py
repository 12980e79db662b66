"""Pydantic schemas for CBT conversation endpoints."""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from app.pipelines.analysis import TextAnalysis
from app.pipelines.orchestration import CbtReply, SessionInsights

from .common import ScoreSummaryView


class CbtSessionResponse(BaseModel):
    sessionId: str = Field(..., description="CBT session identifier")
    userId: str = Field(..., description="Owner of the session")
    createdAt: datetime = Field(..., description="Session creation timestamp")


class CbtMessageRequest(BaseModel):
    """A typed user message with optional recordings of it."""

    text: str = Field(..., min_length=1, description="What the user said")
    audioLocator: Optional[str] = Field(None, description="Locator of an audio recording of the message")
    videoLocator: Optional[str] = Field(None, description="s3:// locator of a video recording of the message")


class CbtAudioMessageRequest(BaseModel):
    """A spoken user message; the recording is transcribed first."""

    audioLocator: str = Field(..., description="s3:// locator of the recording")
    videoLocator: Optional[str] = Field(None, description="s3:// locator of a matching video")


class TextAnalysisView(BaseModel):
    primaryEmotion: str
    emotionConfidence: float
    cognitiveDistortions: List[str]
    keyThemes: List[str]

    @classmethod
    def from_analysis(cls, analysis: TextAnalysis) -> "TextAnalysisView":
        return cls(
            primaryEmotion=analysis.primary_emotion,
            emotionConfidence=analysis.emotion_confidence,
            cognitiveDistortions=list(analysis.cognitive_distortions),
            keyThemes=list(analysis.key_themes),
        )


class CbtReplyResponse(BaseModel):
    """Therapist reply for one user message."""

    sessionId: str
    turnId: str = Field(..., description="Identifier of the turn the message was stored under")
    response: str = Field(..., description="Generated therapist reply")
    analysis: Optional[TextAnalysisView] = Field(None, description="Text analysis of the message, if it succeeded")
    recurringPatterns: List[str] = Field(default_factory=list)
    interventions: List[str] = Field(default_factory=list)
    usedHistory: bool = Field(False, description="Whether context from earlier sessions was included")

    @classmethod
    def from_reply(cls, reply: CbtReply) -> "CbtReplyResponse":
        return cls(
            sessionId=reply.session_id,
            turnId=reply.turn_id,
            response=reply.response,
            analysis=TextAnalysisView.from_analysis(reply.analysis) if reply.analysis else None,
            recurringPatterns=list(reply.recurring_patterns),
            interventions=list(reply.interventions),
            usedHistory=reply.used_history,
        )


class SessionInsightsResponse(BaseModel):
    """Aggregated signals across the turns of a session."""

    sessionId: str
    turns: int
    emotions: List[str] = Field(default_factory=list)
    distortions: Dict[str, int] = Field(default_factory=dict, description="Distortion label to occurrence count")
    themes: Dict[str, int] = Field(default_factory=dict)
    nonverbal: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    result: Optional[ScoreSummaryView] = None

    @classmethod
    def from_insights(cls, insights: SessionInsights) -> "SessionInsightsResponse":
        return cls(
            sessionId=insights.session_id,
            turns=insights.turns,
            emotions=list(insights.emotions),
            distortions=insights.distortions,
            themes=insights.themes,
            nonverbal=list(insights.nonverbal),
            errors=list(insights.errors),
            result=ScoreSummaryView.from_summary(insights.summary) if insights.summary else None,
        )
