"""Burnout assessment flow.

1. ``create_assessment_session`` – generate the question set and open a session.
2. ``record_response`` – store the answer, dispatch media analysis in the background.
3. ``is_complete`` – every question answered (vlog questions once their video analysis landed).
4. ``complete_assessment`` – finalize through ``BurnoutScorer``; safe to call repeatedly.
"""

from __future__ import annotations

import asyncio
import logging
import time

from app.pipelines.analysis import (
    AudioAnalyzer,
    InvalidLocatorError,
    Modality,
    VideoAnalyzer,
    parse_locator,
)
from app.pipelines.analysis.audio import AUDIO_SCHEMES
from app.pipelines.analysis.locators import S3_SCHEME
from app.pipelines.sessions import (
    AssessmentIncompleteError,
    Finalizer,
    InvalidResponseError,
    ScoreSummary,
    SessionAggregator,
    SessionClosedError,
    SessionKind,
    SessionNotFoundError,
    SessionRecord,
    UnitKind,
    UnitNotFoundError,
    UnitSpec,
)

from .questions import BurnoutQuestionGenerator

logger = logging.getLogger(__name__)

LIKERT_MIN = 0
LIKERT_MAX = 6
VLOG_PLACEHOLDER = "[video response]"


def normalize_answer(unit: UnitSpec, response: str | int | None) -> str:
    """Validate ``response`` for ``unit`` and return the text to store."""

    text = "" if response is None else str(response).strip()
    if unit.kind == UnitKind.LIKERT:
        try:
            value = int(text)
        except ValueError:
            raise InvalidResponseError(
                f"Question {unit.unit_id} expects a rating from {LIKERT_MIN} to {LIKERT_MAX}."
            ) from None
        if not LIKERT_MIN <= value <= LIKERT_MAX:
            raise InvalidResponseError(
                f"Rating {value} for {unit.unit_id} is outside {LIKERT_MIN}-{LIKERT_MAX}."
            )
        return str(value)
    if unit.kind == UnitKind.OPEN_TEXT and not text:
        raise InvalidResponseError(f"Question {unit.unit_id} needs a written answer.")
    return text or VLOG_PLACEHOLDER


class BurnoutAssessmentOrchestrator:
    def __init__(
        self,
        aggregator: SessionAggregator,
        questions: BurnoutQuestionGenerator,
        scorer: Finalizer,
        video: VideoAnalyzer,
        audio: AudioAnalyzer,
    ) -> None:
        self._aggregator = aggregator
        self._questions = questions
        self._video = video
        self._audio = audio
        aggregator.register_finalizer(SessionKind.BURNOUT, scorer, auto=True)

    async def create_assessment_session(self, user_id: str) -> SessionRecord:
        started = time.perf_counter()
        units = await self._questions.generate()
        record = await self._aggregator.create_session(user_id, SessionKind.BURNOUT, units)
        logger.info(
            "Burnout session %s ready with %d questions in %.0f ms",
            record.session_id,
            len(units),
            (time.perf_counter() - started) * 1000,
        )
        return record

    async def get_session(self, session_id: str) -> SessionRecord:
        record = await self._aggregator.get(session_id)
        if record is None or record.kind != SessionKind.BURNOUT:
            raise SessionNotFoundError(session_id)
        return record

    async def record_response(
        self,
        session_id: str,
        question_id: str,
        response: str | int | None,
        video_locator: str | None = None,
        audio_locator: str | None = None,
    ) -> bool:
        """Store an answer and start any media analysis for it.

        Every validation error is raised before anything is stored or
        submitted. Analysis outcomes reach the session through the
        aggregator mailbox; this call never waits on them.
        """

        record = await self.get_session(session_id)
        if record.summary is not None:
            raise SessionClosedError(session_id)
        unit = record.unit(question_id)
        if unit is None:
            raise UnitNotFoundError(session_id, question_id)

        text = normalize_answer(unit, response)
        if unit.kind == UnitKind.VLOG and not video_locator:
            raise InvalidLocatorError(f"Question {question_id} requires a video response.")
        if video_locator:
            parse_locator(video_locator, allowed_schemes=(S3_SCHEME,))
        if audio_locator:
            parse_locator(audio_locator, allowed_schemes=AUDIO_SCHEMES)

        await self._aggregator.record_text(session_id, question_id, text)

        dispatched: list[tuple[Modality, asyncio.Future]] = []
        if video_locator:
            dispatched.append(
                (
                    Modality.VIDEO,
                    self._video.analyze_async(
                        video_locator, key=f"{session_id}:{question_id}:video"
                    ),
                )
            )
        if audio_locator:
            dispatched.append(
                (
                    Modality.AUDIO,
                    self._audio.analyze_async(
                        audio_locator, key=f"{session_id}:{question_id}:audio"
                    ),
                )
            )
        for modality, future in dispatched:
            self._aggregator.attach(session_id, question_id, modality, future)

        logger.info(
            "Recorded answer for %s/%s (media: %s)",
            session_id,
            question_id,
            ", ".join(m.value for m, _ in dispatched) or "none",
        )
        return True

    async def is_complete(self, session_id: str) -> bool:
        await self.get_session(session_id)
        return await self._aggregator.is_complete(session_id)

    async def complete_assessment(self, session_id: str) -> ScoreSummary:
        await self.get_session(session_id)
        outstanding = await self._aggregator.outstanding_units(session_id)
        if outstanding:
            raise AssessmentIncompleteError(session_id, outstanding)
        return await self._aggregator.finalize(session_id)

    async def delete_session(self, session_id: str) -> None:
        await self.get_session(session_id)
        await self._aggregator.close_session(session_id)
        logger.info("Deleted assessment session %s", session_id)


__all__ = ["BurnoutAssessmentOrchestrator", "normalize_answer"]
