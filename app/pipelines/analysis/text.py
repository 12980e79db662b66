"""Language-model analysis of a single user utterance.

Three independent completions run concurrently:

1. ``emotion`` – primary emotion, ``label|confidence``.
2. ``distortions`` – CBT cognitive distortions, ``a, b|confidence`` or ``none|confidence``.
3. ``themes`` – up to three key themes, same format as distortions.

A completion that does not follow the format fails the whole analysis with
``MalformedResponseError``; nothing is defaulted.
"""

from __future__ import annotations

import asyncio
import logging
import math

from app.config.settings import settings
from app.services.llm_client import BedrockLlmClient, LlmInvocationError

from .errors import AnalysisValidationError, MalformedResponseError, ProviderFailureError
from .types import TextAnalysis

logger = logging.getLogger(__name__)

EMOTION_LABELS = (
    "anger",
    "fear",
    "joy",
    "sadness",
    "surprise",
    "disgust",
    "neutral",
    "anxiety",
    "shame",
    "guilt",
)

_FORMAT_RULE = (
    " Finish with a pipe and your confidence between 0 and 1, e.g. 'x|0.8'."
    " Respond with that single line only."
)

EMOTION_PROMPT = (
    "You are an emotion detection system. Identify the primary emotion expressed "
    "in the text. Answer with one word from this list: "
    + ", ".join(EMOTION_LABELS)
    + "."
    + _FORMAT_RULE
)

DISTORTION_PROMPT = (
    "You are a CBT analysis system. Identify any cognitive distortions in the text. "
    "Answer with the distortion names separated by commas, or 'none' if there are "
    "none. Common distortions: all-or-nothing thinking, overgeneralization, mental "
    "filter, disqualifying the positive, jumping to conclusions, magnification, "
    "emotional reasoning, should statements, labeling, personalization."
    + _FORMAT_RULE
)

THEME_PROMPT = (
    "You are a theme extraction system. Identify at most three main themes or "
    "concerns in the text, separated by commas."
    + _FORMAT_RULE
)

_ANALYSIS_MAX_TOKENS = 60


def parse_labelled_line(raw: str, *, multiple: bool) -> tuple[tuple[str, ...], float]:
    """Split ``labels|confidence`` into normalized labels and a confidence.

    ``multiple`` allows comma-separated labels and the ``none`` sentinel.
    """

    line = next((part.strip() for part in (raw or "").splitlines() if part.strip()), "")
    if "|" not in line:
        raise MalformedResponseError(f"Missing '|' separator in {line!r}")

    label_part, _, confidence_part = line.rpartition("|")
    try:
        confidence = float(confidence_part.strip())
    except ValueError as exc:
        raise MalformedResponseError(f"Non-numeric confidence in {line!r}") from exc
    if math.isnan(confidence) or not 0.0 <= confidence <= 1.0:
        raise MalformedResponseError(f"Confidence out of range in {line!r}")

    label_part = label_part.strip().strip("'\"").strip()
    if not label_part:
        raise MalformedResponseError(f"Empty label in {line!r}")

    if not multiple:
        return (label_part.lower(),), confidence

    if label_part.lower() == "none":
        return (), confidence
    labels = tuple(item.strip().lower() for item in label_part.split(",") if item.strip())
    if not labels:
        raise MalformedResponseError(f"Empty label list in {line!r}")
    return labels, confidence


class TextAnalyzer:
    """Run emotion, distortion and theme extraction for one utterance."""

    def __init__(self, llm: BedrockLlmClient, *, model_id: str | None = None) -> None:
        self._llm = llm
        self._model_id = model_id or settings.bedrock.analysis_model_id

    def analyze_async(self, text: str) -> asyncio.Future:
        if not text or not text.strip():
            raise AnalysisValidationError("Cannot analyse empty text.")
        return asyncio.ensure_future(self.analyze(text.strip()))

    async def analyze(self, text: str) -> TextAnalysis:
        emotion_raw, distortion_raw, theme_raw = await asyncio.gather(
            self._complete(EMOTION_PROMPT, text),
            self._complete(DISTORTION_PROMPT, text),
            self._complete(THEME_PROMPT, text),
        )

        (emotion,), emotion_confidence = parse_labelled_line(emotion_raw, multiple=False)
        distortions, distortion_confidence = parse_labelled_line(distortion_raw, multiple=True)
        themes, theme_confidence = parse_labelled_line(theme_raw, multiple=True)

        logger.debug(
            "Text analysis: emotion=%s distortions=%s themes=%s",
            emotion,
            distortions,
            themes,
        )
        return TextAnalysis(
            primary_emotion=emotion,
            emotion_confidence=emotion_confidence,
            cognitive_distortions=distortions,
            distortion_confidence=distortion_confidence,
            key_themes=themes[:3],
            theme_confidence=theme_confidence,
        )

    async def _complete(self, system_prompt: str, text: str) -> str:
        try:
            return await self._llm.invoke(
                system_prompt=system_prompt,
                user_prompt=text,
                max_tokens=_ANALYSIS_MAX_TOKENS,
                temperature=0.0,
                model_id=self._model_id,
            )
        except LlmInvocationError as exc:
            raise ProviderFailureError(f"Text analysis call failed: {exc}", provider="bedrock") from exc


__all__ = [
    "DISTORTION_PROMPT",
    "EMOTION_LABELS",
    "EMOTION_PROMPT",
    "THEME_PROMPT",
    "TextAnalyzer",
    "parse_labelled_line",
]
