"""Shared fakes for the job providers, the LLM and the embedding model."""

from __future__ import annotations

import asyncio
import re
import zlib
from pathlib import Path
import sys
from typing import Any, Callable

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from app.pipelines.analysis import JobPoller, JobProvider, JobStatus, ProviderStatus  # noqa: E402
from app.pipelines.orchestration.prompts import (  # noqa: E402
    MULTIMODAL_QUESTION_SYSTEM,
    SCORE_SYSTEM,
    STANDARD_QUESTION_SYSTEM,
    SUMMARY_SYSTEM,
    SYNTHESIS_SYSTEM,
)
from app.pipelines.analysis.text import DISTORTION_PROMPT, EMOTION_PROMPT, THEME_PROMPT  # noqa: E402


class ScriptedProvider(JobProvider):
    """Returns the scripted raw statuses in order, repeating the last one."""

    name = "scripted"
    status_map = {
        "QUEUED": JobStatus.SUBMITTED,
        "IN_PROGRESS": JobStatus.IN_PROGRESS,
        "SUCCEEDED": JobStatus.SUCCEEDED,
        "FAILED": JobStatus.FAILED,
    }

    def __init__(
        self,
        statuses: list[str],
        result: Any = None,
        *,
        start_error: Exception | None = None,
        max_attempts: int | None = None,
    ) -> None:
        self._statuses = list(statuses)
        self.result = result
        self.start_error = start_error
        self.max_attempts = max_attempts
        self.started: list[Any] = []
        self.polls = 0

    async def start_job(self, payload: Any) -> str:
        if self.start_error is not None:
            raise self.start_error
        self.started.append(payload)
        return f"job-{len(self.started)}"

    async def get_job_status(self, job_id: str) -> ProviderStatus:
        self.polls += 1
        raw = self._statuses[min(self.polls, len(self._statuses)) - 1]
        if raw == "SUCCEEDED":
            return ProviderStatus(raw, self.result)
        if raw == "FAILED":
            return ProviderStatus(raw, message=f"{job_id} failed")
        return ProviderStatus(raw)


class GatedProvider(JobProvider):
    """Stays in progress until ``release`` is called, then succeeds."""

    name = "gated"
    status_map = {
        "IN_PROGRESS": JobStatus.IN_PROGRESS,
        "SUCCEEDED": JobStatus.SUCCEEDED,
        "FAILED": JobStatus.FAILED,
    }

    def __init__(self, result: Any = None, *, fail: bool = False) -> None:
        self.result = result
        self.fail = fail
        self.max_attempts = 10_000
        self.started: list[Any] = []
        self._released = False

    def release(self) -> None:
        self._released = True

    async def start_job(self, payload: Any) -> str:
        self.started.append(payload)
        return f"gated-{len(self.started)}"

    async def get_job_status(self, job_id: str) -> ProviderStatus:
        if not self._released:
            return ProviderStatus("IN_PROGRESS")
        if self.fail:
            return ProviderStatus("FAILED", message="provider rejected the media")
        return ProviderStatus("SUCCEEDED", self.result)


def rekognition_faces(*emotion_sets: dict[str, float]) -> list[dict[str, Any]]:
    return [
        {
            "Timestamp": index * 500,
            "Face": {
                "Confidence": 99.0,
                "Emotions": [{"Type": label, "Confidence": score} for label, score in emotions.items()],
            },
        }
        for index, emotions in enumerate(emotion_sets)
    ]


def hume_predictions(*utterances: tuple[str, dict[str, float]]) -> list[dict[str, Any]]:
    return [
        {
            "results": {
                "predictions": [
                    {
                        "models": {
                            "prosody": {
                                "grouped_predictions": [
                                    {
                                        "predictions": [
                                            {
                                                "text": text,
                                                "time": {"begin": float(i), "end": float(i) + 1.0},
                                                "emotions": [
                                                    {"name": name, "score": score}
                                                    for name, score in emotions.items()
                                                ],
                                            }
                                            for i, (text, emotions) in enumerate(utterances)
                                        ]
                                    }
                                ]
                            }
                        }
                    }
                ]
            }
        }
    ]


class FakeLlm:
    """Answers ``invoke`` by system prompt; ``converse`` returns ``reply``."""

    def __init__(
        self,
        responses: dict[str, str | Exception | Callable[[str], str]] | None = None,
        *,
        default: str = "",
        reply: str = "That sounds hard. What went through your mind then?",
    ) -> None:
        self.responses = dict(responses or {})
        self.default = default
        self.reply = reply
        self.calls: list[tuple[str, str]] = []
        self.conversations: list[tuple[str, list[dict[str, str]]]] = []

    def count(self, system_prompt: str) -> int:
        return sum(1 for prompt, _ in self.calls if prompt == system_prompt)

    async def invoke(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int | None = None,
        temperature: float | None = None,
        top_p: float | None = None,
        model_id: str | None = None,
    ) -> str:
        self.calls.append((system_prompt, user_prompt))
        await asyncio.sleep(0)
        value = self.responses.get(system_prompt, self.default)
        if isinstance(value, Exception):
            raise value
        if callable(value):
            return value(user_prompt)
        return value

    async def converse(
        self,
        *,
        system_prompt: str,
        messages: list[dict[str, str]],
        max_tokens: int | None = None,
    ) -> str:
        self.conversations.append((system_prompt, [dict(m) for m in messages]))
        return self.reply


class FakeEmbedder:
    """Bag-of-words hashing embedder: shared words mean similar vectors."""

    def __init__(self, dimensions: int = 256) -> None:
        self.dimensions = dimensions
        self.calls = 0

    async def embed(self, text: str) -> np.ndarray:
        self.calls += 1
        vector = np.zeros(self.dimensions, dtype=np.float32)
        for token in re.findall(r"[a-z']+", text.lower()):
            vector[zlib.crc32(token.encode("utf-8")) % self.dimensions] += 1.0
        norm = float(np.linalg.norm(vector))
        return vector / norm if norm else vector


def text_analysis_responses(
    emotion: str = "sadness|0.8",
    distortions: str = "overgeneralization|0.7",
    themes: str = "work, fatigue|0.9",
) -> dict[str, str]:
    return {EMOTION_PROMPT: emotion, DISTORTION_PROMPT: distortions, THEME_PROMPT: themes}


def burnout_llm(**overrides: Any) -> FakeLlm:
    responses: dict[str, Any] = {
        STANDARD_QUESTION_SYSTEM: "1. I feel tired.\n2. I feel stuck.\n3. I feel tense.",
        MULTIMODAL_QUESTION_SYSTEM: "Tell us about a hard day recently.",
        SCORE_SYSTEM: '{"score": 6.5, "explanation": "Moderate exhaustion"}',
        SUMMARY_SYSTEM: "You show signs of moderate burnout.",
        SYNTHESIS_SYSTEM: (
            '{"congruenceScore": 0.8, "dominantEmotion": "sadness", '
            '"cognitiveDistortions": ["overgeneralization"], '
            '"interpretation": "Words and tone agree.", "followUpPrompts": ["What helps?"]}'
        ),
    }
    responses.update(text_analysis_responses())
    responses.update(overrides)
    return FakeLlm(responses)


@pytest.fixture
def poller_factory():
    def _make(**kwargs: Any) -> JobPoller:
        kwargs.setdefault("poll_interval", 0)
        kwargs.setdefault("pool_size", 4)
        kwargs.setdefault("duplicate_policy", "allow")
        return JobPoller(**kwargs)

    return _make
