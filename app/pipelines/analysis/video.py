"""Facial-expression analysis of uploaded vlog responses."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .emotions import top_emotions
from .errors import MalformedResponseError
from .locators import S3_SCHEME, parse_locator
from .poller import JobPoller
from .types import FaceObservation, JobProvider, VideoAnalysis

logger = logging.getLogger(__name__)


def parse_face_detection(raw_faces: Any) -> VideoAnalysis:
    """Reduce Rekognition ``Faces`` entries to the top emotions per face."""

    if raw_faces is None:
        return VideoAnalysis()
    if not isinstance(raw_faces, list):
        raise MalformedResponseError("Face detection result must be a list of faces.")

    faces: list[FaceObservation] = []
    for item in raw_faces:
        if not isinstance(item, dict):
            raise MalformedResponseError(f"Unexpected face entry: {item!r}")
        try:
            face = item.get("Face") or {}
            faces.append(
                FaceObservation(
                    timestamp_ms=int(item.get("Timestamp", 0)),
                    confidence=float(face.get("Confidence", 0.0)),
                    emotions=top_emotions(
                        face.get("Emotions", []),
                        label_key="Type",
                        score_key="Confidence",
                    ),
                )
            )
        except (AttributeError, TypeError, ValueError) as exc:
            raise MalformedResponseError(f"Unexpected face entry {item!r}: {exc}") from exc
    return VideoAnalysis(faces=tuple(faces))


class VideoAnalyzer:
    """Submit ``s3://`` videos to the face provider through the poller."""

    def __init__(self, provider: JobProvider, poller: JobPoller) -> None:
        self._provider = provider
        self._poller = poller

    def analyze_async(self, locator: str, *, key: str | None = None) -> asyncio.Future:
        """Validate ``locator`` now and return a future for the ``VideoAnalysis``.

        Raises ``InvalidLocatorError`` before any job is submitted.
        """

        parsed = parse_locator(locator, allowed_schemes=(S3_SCHEME,))
        logger.info("Queueing video analysis for %s", parsed.raw)
        return self._poller.submit(
            self._provider,
            (parsed.bucket, parsed.key),
            parse_face_detection,
            key=key or parsed.raw,
        )


__all__ = ["VideoAnalyzer", "parse_face_detection"]
