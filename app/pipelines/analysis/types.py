"""Typed containers shared across the analysis pipeline.

Kept in their own module so the poller, the adapters and the provider
clients in ``app.services`` can import them without circular imports.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, ClassVar, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class Modality(str, Enum):
    """Channel an analysis result was produced from."""

    TEXT = "text"
    AUDIO = "audio"
    VIDEO = "video"
    TRANSCRIPT = "transcript"


class JobStatus(str, Enum):
    SUBMITTED = "SUBMITTED"
    IN_PROGRESS = "IN_PROGRESS"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    TIMED_OUT = "TIMED_OUT"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED, JobStatus.TIMED_OUT)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AnalysisJob:
    """One outstanding unit of work at an external provider.

    Only the poller mutates instances; callers see the final result through
    the future returned by ``JobPoller.submit``.
    """

    job_id: str
    provider: str
    max_attempts: int
    poll_interval: float
    key: str | None = None
    attempt: int = 0
    status: JobStatus = JobStatus.SUBMITTED
    submitted_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class ProviderStatus:
    """Raw answer from a provider status check."""

    raw_status: str
    raw_result: Any = None
    message: str | None = None


class JobProvider(ABC):
    """Contract implemented by job-based analysis providers."""

    name: ClassVar[str] = "provider"
    status_map: ClassVar[Mapping[str, JobStatus]] = {}

    @abstractmethod
    async def start_job(self, payload: Any) -> str:
        """Submit ``payload`` and return the provider-assigned job id."""

    @abstractmethod
    async def get_job_status(self, job_id: str) -> ProviderStatus:
        """Return the raw status (and result once finished) for ``job_id``."""

    def translate_status(self, raw_status: str) -> JobStatus | None:
        return self.status_map.get((raw_status or "").strip().upper())


class EmotionScore(BaseModel):
    label: str
    score: float

    model_config = ConfigDict(frozen=True)


class Utterance(BaseModel):
    text: str = ""
    begin: float | None = None
    end: float | None = None
    emotions: tuple[EmotionScore, ...] = ()

    model_config = ConfigDict(frozen=True)


class FaceObservation(BaseModel):
    timestamp_ms: int
    confidence: float
    emotions: tuple[EmotionScore, ...] = ()

    model_config = ConfigDict(frozen=True)


class AudioAnalysis(BaseModel):
    """Prosody analysis of a recording: ranked emotions per utterance."""

    modality: Literal[Modality.AUDIO] = Modality.AUDIO
    utterances: tuple[Utterance, ...] = ()
    transcript: str = ""

    model_config = ConfigDict(frozen=True)


class VideoAnalysis(BaseModel):
    """Facial expression analysis: ranked emotions per face per timestamp."""

    modality: Literal[Modality.VIDEO] = Modality.VIDEO
    faces: tuple[FaceObservation, ...] = ()

    model_config = ConfigDict(frozen=True)


class TextAnalysis(BaseModel):
    """Language-model analysis of one utterance."""

    modality: Literal[Modality.TEXT] = Modality.TEXT
    primary_emotion: str
    emotion_confidence: float
    cognitive_distortions: tuple[str, ...] = ()
    distortion_confidence: float = 0.0
    key_themes: tuple[str, ...] = ()
    theme_confidence: float = 0.0

    model_config = ConfigDict(frozen=True)


class Transcript(BaseModel):
    """Speech-to-text output."""

    modality: Literal[Modality.TRANSCRIPT] = Modality.TRANSCRIPT
    job_name: str
    text: str

    model_config = ConfigDict(frozen=True)


AnalysisResult = Annotated[
    Union[AudioAnalysis, VideoAnalysis, TextAnalysis, Transcript],
    Field(discriminator="modality"),
]

analysis_result_adapter: TypeAdapter = TypeAdapter(AnalysisResult)


__all__ = [
    "AnalysisJob",
    "AnalysisResult",
    "AudioAnalysis",
    "EmotionScore",
    "FaceObservation",
    "JobProvider",
    "JobStatus",
    "Modality",
    "ProviderStatus",
    "TextAnalysis",
    "Transcript",
    "Utterance",
    "VideoAnalysis",
    "analysis_result_adapter",
]
