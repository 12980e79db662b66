"""Common FastAPI dependencies reused across controllers.

Every component is a process-wide singleton built lazily on first use.
Tests swap them through ``app.dependency_overrides``.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from app.pipelines.analysis import (
    AudioAnalyzer,
    JobPoller,
    TextAnalyzer,
    Transcriber,
    VideoAnalyzer,
)
from app.pipelines.orchestration import (
    BurnoutAssessmentOrchestrator,
    BurnoutQuestionGenerator,
    BurnoutScorer,
    CbtSessionOrchestrator,
    MultimodalSynthesizer,
)
from app.pipelines.retrieval import ContextIndex, InMemoryVectorStore
from app.pipelines.sessions import InMemorySessionStore, SessionAggregator
from app.services import (
    BedrockLlmClient,
    EmbeddingClient,
    HumeProsodyProvider,
    RekognitionFaceProvider,
    TranscribeJobProvider,
)


@lru_cache
def get_llm_client() -> BedrockLlmClient:
    return BedrockLlmClient()


@lru_cache
def get_job_poller() -> JobPoller:
    return JobPoller()


@lru_cache
def get_aggregator() -> SessionAggregator:
    return SessionAggregator(InMemorySessionStore())


@lru_cache
def get_context_index() -> ContextIndex:
    return ContextIndex(EmbeddingClient(), InMemoryVectorStore())


@lru_cache
def get_video_analyzer() -> VideoAnalyzer:
    return VideoAnalyzer(RekognitionFaceProvider(), get_job_poller())


@lru_cache
def get_audio_analyzer() -> AudioAnalyzer:
    return AudioAnalyzer(HumeProsodyProvider(), get_job_poller())


@lru_cache
def get_transcriber() -> Transcriber:
    return Transcriber(TranscribeJobProvider(), get_job_poller())


@lru_cache
def get_burnout_orchestrator() -> BurnoutAssessmentOrchestrator:
    llm = get_llm_client()
    return BurnoutAssessmentOrchestrator(
        get_aggregator(),
        BurnoutQuestionGenerator(llm),
        BurnoutScorer(llm),
        get_video_analyzer(),
        get_audio_analyzer(),
    )


@lru_cache
def get_cbt_orchestrator() -> CbtSessionOrchestrator:
    llm = get_llm_client()
    return CbtSessionOrchestrator(
        get_aggregator(),
        TextAnalyzer(llm),
        llm,
        get_context_index(),
        MultimodalSynthesizer(llm),
        video=get_video_analyzer(),
        audio=get_audio_analyzer(),
        transcriber=get_transcriber(),
    )


BurnoutDep = Annotated[BurnoutAssessmentOrchestrator, Depends(get_burnout_orchestrator)]
CbtDep = Annotated[CbtSessionOrchestrator, Depends(get_cbt_orchestrator)]
AggregatorDep = Annotated[SessionAggregator, Depends(get_aggregator)]


__all__ = [
    "AggregatorDep",
    "BurnoutDep",
    "CbtDep",
    "get_aggregator",
    "get_audio_analyzer",
    "get_burnout_orchestrator",
    "get_cbt_orchestrator",
    "get_context_index",
    "get_job_poller",
    "get_llm_client",
    "get_transcriber",
    "get_video_analyzer",
]
