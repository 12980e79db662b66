"""Multimodal analysis pipeline.

Modules, leaves first:

1. ``types`` / ``errors`` – result models, job state and the error taxonomy.
2. ``locators`` – scheme validation for media locators.
3. ``poller`` – submit-and-poll engine for job-based providers.
4. ``emotions`` – top-k reduction of emotion vectors.
5. ``video`` / ``audio`` / ``transcription`` – job-based adapters.
6. ``text`` – concurrent LLM analysis of a single utterance.

Every adapter exposes ``analyze_async(source) -> asyncio.Future``; invalid
input raises synchronously before anything is submitted.
"""

from .errors import (
    AnalysisError,
    AnalysisValidationError,
    DuplicateSubmissionError,
    InvalidLocatorError,
    JobTimeoutError,
    MalformedResponseError,
    ProviderFailureError,
    UnexpectedJobStateError,
)
from .types import (
    AnalysisJob,
    AnalysisResult,
    AudioAnalysis,
    EmotionScore,
    FaceObservation,
    JobProvider,
    JobStatus,
    Modality,
    ProviderStatus,
    TextAnalysis,
    Transcript,
    Utterance,
    VideoAnalysis,
    analysis_result_adapter,
)
from .emotions import top_emotions
from .locators import parse_locator
from .poller import JobPoller
from .audio import AudioAnalyzer, parse_prosody_predictions
from .text import TextAnalyzer, parse_labelled_line
from .transcription import Transcriber, parse_transcript
from .video import VideoAnalyzer, parse_face_detection

__all__ = [
    "AnalysisError",
    "AnalysisJob",
    "AnalysisResult",
    "AnalysisValidationError",
    "AudioAnalysis",
    "AudioAnalyzer",
    "DuplicateSubmissionError",
    "EmotionScore",
    "FaceObservation",
    "InvalidLocatorError",
    "JobPoller",
    "JobProvider",
    "JobStatus",
    "JobTimeoutError",
    "MalformedResponseError",
    "Modality",
    "ProviderFailureError",
    "ProviderStatus",
    "TextAnalysis",
    "TextAnalyzer",
    "Transcriber",
    "Transcript",
    "UnexpectedJobStateError",
    "Utterance",
    "VideoAnalysis",
    "VideoAnalyzer",
    "analysis_result_adapter",
    "parse_face_detection",
    "parse_labelled_line",
    "parse_locator",
    "parse_prosody_predictions",
    "parse_transcript",
    "top_emotions",
]
