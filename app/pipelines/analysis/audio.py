"""Voice prosody analysis of recorded answers."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .emotions import top_emotions
from .errors import MalformedResponseError
from .locators import HTTP_SCHEMES, S3_SCHEME, parse_locator
from .poller import JobPoller
from .types import AudioAnalysis, JobProvider, Utterance

logger = logging.getLogger(__name__)

AUDIO_SCHEMES = (*HTTP_SCHEMES, S3_SCHEME)


def _grouped_predictions(raw: Any) -> list[dict[str, Any]]:
    """Walk ``[0].results.predictions[*].models.prosody.grouped_predictions``."""

    if not isinstance(raw, list) or not raw:
        raise MalformedResponseError("Prosody predictions must be a non-empty list.")
    try:
        predictions = raw[0]["results"]["predictions"]
    except (KeyError, TypeError) as exc:
        raise MalformedResponseError(f"Prosody predictions missing results: {exc}") from exc

    groups: list[dict[str, Any]] = []
    try:
        for prediction in predictions or []:
            prosody = (prediction.get("models") or {}).get("prosody") or {}
            groups.extend(prosody.get("grouped_predictions") or [])
    except (AttributeError, TypeError) as exc:
        raise MalformedResponseError(f"Prosody predictions are malformed: {exc}") from exc
    return groups


def parse_prosody_predictions(raw: Any) -> AudioAnalysis:
    """Keep the top emotions per utterance and stitch the transcript together."""

    utterances: list[Utterance] = []
    for group in _grouped_predictions(raw):
        try:
            for item in group.get("predictions") or []:
                timing = item.get("time") or {}
                utterances.append(
                    Utterance(
                        text=(item.get("text") or "").strip(),
                        begin=timing.get("begin"),
                        end=timing.get("end"),
                        emotions=top_emotions(item.get("emotions") or []),
                    )
                )
        except (AttributeError, TypeError, ValueError) as exc:
            raise MalformedResponseError(f"Unexpected utterance in {group!r}: {exc}") from exc

    transcript = " ".join(u.text for u in utterances if u.text)
    return AudioAnalysis(utterances=tuple(utterances), transcript=transcript)


class AudioAnalyzer:
    """Submit recordings to the prosody provider through the poller."""

    def __init__(self, provider: JobProvider, poller: JobPoller) -> None:
        self._provider = provider
        self._poller = poller

    def analyze_async(self, locator: str, *, key: str | None = None) -> asyncio.Future:
        parsed = parse_locator(locator, allowed_schemes=AUDIO_SCHEMES)
        logger.info("Queueing prosody analysis for %s", parsed.raw)
        return self._poller.submit(
            self._provider,
            parsed.raw,
            parse_prosody_predictions,
            key=key or parsed.raw,
        )


__all__ = ["AUDIO_SCHEMES", "AudioAnalyzer", "parse_prosody_predictions"]
