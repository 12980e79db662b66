"""Finalizers that turn a completed session into a ``ScoreSummary``."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from statistics import fmean
from typing import Iterable

from app.pipelines.analysis.types import (
    AudioAnalysis,
    EmotionScore,
    Modality,
    TextAnalysis,
    VideoAnalysis,
    analysis_result_adapter,
)
from app.pipelines.sessions.models import ResponseEntry, ScoreSummary, SessionRecord, frozen_map
from app.services.llm_client import BedrockLlmClient
from app.services.response_contract import BurnoutScoreResponse, SynthesisResponse

from .prompts import (
    SCORE_SYSTEM,
    SUMMARY_SYSTEM,
    SYNTHESIS_SYSTEM,
    score_prompt,
    summary_prompt,
    synthesis_prompt,
)

logger = logging.getLogger(__name__)

_SCORE_MAX_TOKENS = 400
_SUMMARY_MAX_TOKENS = 500
_SYNTHESIS_MAX_TOKENS = 800


def decode_insights(entry: ResponseEntry) -> dict[Modality, object]:
    decoded = {}
    for modality, payload in entry.insights.items():
        decoded[modality] = analysis_result_adapter.validate_json(payload)
    return decoded


def _average_emotions(groups: Iterable[Iterable[EmotionScore]], scale: float = 1.0) -> list[EmotionScore]:
    totals: dict[str, list[float]] = defaultdict(list)
    for emotions in groups:
        for emotion in emotions:
            totals[emotion.label.lower()].append(emotion.score / scale)
    averaged = [EmotionScore(label=label, score=fmean(values)) for label, values in totals.items()]
    averaged.sort(key=lambda item: item.score, reverse=True)
    return averaged[:3]


def _format_emotions(emotions: Iterable[EmotionScore]) -> str:
    return ", ".join(f"{e.label} ({e.score:.0%})" for e in emotions) or "no clear signal"


def describe_result(result: object) -> str:
    """One-line, prompt-friendly description of an analysis result."""

    if isinstance(result, VideoAnalysis):
        return "facial expression: " + _format_emotions(
            _average_emotions((face.emotions for face in result.faces), scale=100.0)
        )
    if isinstance(result, AudioAnalysis):
        return "voice tone: " + _format_emotions(
            _average_emotions(u.emotions for u in result.utterances)
        )
    if isinstance(result, TextAnalysis):
        text = f"text emotion: {result.primary_emotion}"
        if result.cognitive_distortions:
            text += "; distortions: " + ", ".join(result.cognitive_distortions)
        return text
    return ""


def format_responses(record: SessionRecord) -> str:
    """Render every unit with its answer and insights for the scoring prompts."""

    blocks = []
    for unit in record.units:
        entry = record.responses.get(unit.unit_id)
        lines = [f"Q: {unit.prompt}"]
        if entry is None or entry.text_response is None:
            lines.append("A: [No response]")
        else:
            lines.append(f"A: {entry.text_response}")
            notes = [describe_result(result) for result in decode_insights(entry).values()]
            notes = [note for note in notes if note]
            if notes:
                lines.append("Multimodal: " + "; ".join(notes))
        lines.append("---")
        blocks.append("\n".join(lines))
    return "\n".join(blocks)


class BurnoutScorer:
    """Score (0-10) and narrative summary for a burnout assessment."""

    def __init__(self, llm: BedrockLlmClient) -> None:
        self._llm = llm

    async def __call__(self, record: SessionRecord) -> ScoreSummary:
        formatted = format_responses(record)
        score_raw, summary_raw = await asyncio.gather(
            self._llm.invoke(
                system_prompt=SCORE_SYSTEM,
                user_prompt=score_prompt(formatted),
                max_tokens=_SCORE_MAX_TOKENS,
            ),
            self._llm.invoke(
                system_prompt=SUMMARY_SYSTEM,
                user_prompt=summary_prompt(formatted),
                max_tokens=_SUMMARY_MAX_TOKENS,
                temperature=0.4,
            ),
        )
        score = BurnoutScoreResponse.from_json(score_raw)
        logger.info("Burnout score for session %s: %.1f", record.session_id, score.score)
        return ScoreSummary(
            score=score.score,
            explanation=score.explanation,
            summary=summary_raw.strip(),
        )


def channel_scores(record: SessionRecord) -> tuple[float, float, float, list[str]]:
    """Mean confidence of the strongest signal per channel, plus observations."""

    text_scores: list[float] = []
    voice_scores: list[float] = []
    video_scores: list[float] = []
    observations: list[str] = []

    for entry in record.responses.values():
        for result in decode_insights(entry).values():
            if isinstance(result, TextAnalysis):
                text_scores.append(result.emotion_confidence)
            elif isinstance(result, AudioAnalysis):
                voice_scores.extend(u.emotions[0].score for u in result.utterances if u.emotions)
            elif isinstance(result, VideoAnalysis):
                video_scores.extend(f.emotions[0].score / 100.0 for f in result.faces if f.emotions)
            note = describe_result(result)
            if note:
                observations.append(note)

    def _mean(values: list[float]) -> float:
        return fmean(values) if values else 0.0

    return _mean(text_scores), _mean(voice_scores), _mean(video_scores), observations


class MultimodalSynthesizer:
    """Congruence analysis across words, tone and face for a CBT session."""

    def __init__(self, llm: BedrockLlmClient) -> None:
        self._llm = llm

    async def __call__(self, record: SessionRecord) -> ScoreSummary:
        text_score, voice_score, video_score, observations = channel_scores(record)
        raw = await self._llm.invoke(
            system_prompt=SYNTHESIS_SYSTEM,
            user_prompt=synthesis_prompt(text_score, voice_score, video_score, observations[-20:]),
            max_tokens=_SYNTHESIS_MAX_TOKENS,
        )
        synthesis = SynthesisResponse.from_json(raw)
        summary = synthesis.interpretation
        if synthesis.dominant_emotion:
            summary = f"Dominant emotion: {synthesis.dominant_emotion}. {summary}".strip()
        return ScoreSummary(
            score=synthesis.congruence_score,
            explanation=synthesis.interpretation,
            summary=summary,
            details=frozen_map(synthesis.model_dump(by_alias=True)),
        )


__all__ = [
    "BurnoutScorer",
    "MultimodalSynthesizer",
    "channel_scores",
    "decode_insights",
    "describe_result",
    "format_responses",
]
