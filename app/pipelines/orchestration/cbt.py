"""Conversational CBT sessions.

Each user message becomes a turn unit. The text is analysed before the
reply is generated; audio and video for the turn are analysed in the
background and show up as extra insights on that turn. History from the
user's other sessions, recurring distortions and matching interventions are
folded into the system prompt.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field

from app.pipelines.analysis import (
    AnalysisError,
    AnalysisValidationError,
    AudioAnalyzer,
    Modality,
    TextAnalysis,
    TextAnalyzer,
    Transcriber,
    VideoAnalyzer,
    parse_locator,
)
from app.pipelines.analysis.audio import AUDIO_SCHEMES
from app.pipelines.analysis.locators import S3_SCHEME
from app.pipelines.retrieval import ContextIndex
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
    UnitSpec,
)
from app.pipelines.sessions.aggregator import describe_failure
from app.services.embeddings import EmbeddingError
from app.services.llm_client import BedrockLlmClient

from .prompts import CBT_SYSTEM, therapy_context_message
from .scoring import decode_insights, describe_result

logger = logging.getLogger(__name__)

MAX_TURN_ATTEMPTS = 16


@dataclass(frozen=True)
class CbtReply:
    session_id: str
    turn_id: str
    response: str
    analysis: TextAnalysis | None = None
    recurring_patterns: tuple[str, ...] = ()
    interventions: tuple[str, ...] = ()
    used_history: bool = False


@dataclass(frozen=True)
class SessionInsights:
    session_id: str
    turns: int
    emotions: tuple[str, ...] = ()
    distortions: dict[str, int] = field(default_factory=dict)
    themes: dict[str, int] = field(default_factory=dict)
    nonverbal: tuple[str, ...] = ()
    errors: tuple[str, ...] = ()
    summary: ScoreSummary | None = None


class CbtSessionOrchestrator:
    def __init__(
        self,
        aggregator: SessionAggregator,
        text: TextAnalyzer,
        llm: BedrockLlmClient,
        index: ContextIndex,
        synthesizer: Finalizer,
        *,
        video: VideoAnalyzer | None = None,
        audio: AudioAnalyzer | None = None,
        transcriber: Transcriber | None = None,
    ) -> None:
        self._aggregator = aggregator
        self._text = text
        self._llm = llm
        self._index = index
        self._video = video
        self._audio = audio
        self._transcriber = transcriber
        self._history: dict[str, list[dict[str, str]]] = {}
        aggregator.register_finalizer(SessionKind.CBT, synthesizer, auto=False)

    async def create_session(self, user_id: str) -> SessionRecord:
        record = await self._aggregator.create_session(user_id, SessionKind.CBT)
        self._history[record.session_id] = []
        return record

    async def get_session(self, session_id: str) -> SessionRecord:
        record = await self._aggregator.get(session_id)
        if record is None or record.kind != SessionKind.CBT:
            raise SessionNotFoundError(session_id)
        return record

    async def process_user_message(
        self,
        session_id: str,
        text: str,
        audio_locator: str | None = None,
        video_locator: str | None = None,
    ) -> CbtReply:
        record = await self.get_session(session_id)
        if record.summary is not None:
            raise SessionClosedError(session_id)
        message = (text or "").strip()
        if not message:
            raise InvalidResponseError("Message text is empty.")
        if video_locator:
            parse_locator(video_locator, allowed_schemes=(S3_SCHEME,))
        if audio_locator:
            parse_locator(audio_locator, allowed_schemes=AUDIO_SCHEMES)

        turn_id = await self._open_turn(session_id, message)
        await self._aggregator.record_text(session_id, turn_id, message)
        self._dispatch_media(session_id, turn_id, audio_locator, video_locator)

        analysis = await self._analyse(session_id, turn_id, message)

        user_id = record.user_id
        retrieved = ""
        recurring: list[str] = []
        interventions: list[str] = []
        try:
            message_id = await self._index.index_message(session_id, user_id, message)
            if analysis is not None:
                await self._index.index_analysis(
                    session_id, user_id, analysis, source_message_id=message_id
                )
                recurring = await self._index.find_recurring_patterns(session_id, user_id, analysis)
                interventions = await self._index.find_relevant_interventions(
                    analysis.cognitive_distortions
                )
            retrieved = await self._index.build_context_for_prompt(session_id, user_id, message)
        except EmbeddingError as exc:
            logger.warning("Retrieval unavailable for session %s: %s", session_id, exc)

        current = await self.get_session(session_id)
        context = therapy_context_message(
            analysis,
            retrieved_context=retrieved,
            interventions=interventions,
            recurring_patterns=recurring,
            nonverbal_notes=self._nonverbal_notes(current),
        )
        system_prompt = CBT_SYSTEM + ("\n\n" + context if context else "")

        history = self._history.setdefault(session_id, [])
        history.append({"role": "user", "text": message})
        reply = await self._llm.converse(system_prompt=system_prompt, messages=history)
        history.append({"role": "assistant", "text": reply})

        try:
            await self._index.index_message(session_id, user_id, reply, is_user_message=False)
        except EmbeddingError as exc:
            logger.warning("Could not index reply for session %s: %s", session_id, exc)

        return CbtReply(
            session_id=session_id,
            turn_id=turn_id,
            response=reply,
            analysis=analysis,
            recurring_patterns=tuple(recurring),
            interventions=tuple(interventions),
            used_history=bool(retrieved),
        )

    async def process_audio_message(
        self,
        session_id: str,
        audio_locator: str,
        video_locator: str | None = None,
    ) -> CbtReply:
        """Transcribe a recorded message, then handle it like a typed one."""

        record = await self.get_session(session_id)
        if record.summary is not None:
            raise SessionClosedError(session_id)
        if self._transcriber is None:
            raise AnalysisValidationError("Speech-to-text is not configured.")
        transcript = await self._transcriber.analyze_async(
            audio_locator, job_prefix=f"dta-{session_id}"
        )
        if not transcript.text:
            raise InvalidResponseError("No speech was recognised in the recording.")
        return await self.process_user_message(
            session_id,
            transcript.text,
            audio_locator=audio_locator,
            video_locator=video_locator,
        )

    async def session_insights(self, session_id: str) -> SessionInsights:
        record = await self.get_session(session_id)
        emotions: list[str] = []
        distortions: Counter[str] = Counter()
        themes: Counter[str] = Counter()
        errors: list[str] = []
        for unit in record.units:
            entry = record.responses.get(unit.unit_id)
            if entry is None:
                continue
            errors.extend(entry.errors.values())
            text_result = decode_insights(entry).get(Modality.TEXT)
            if isinstance(text_result, TextAnalysis):
                emotions.append(text_result.primary_emotion)
                distortions.update(text_result.cognitive_distortions)
                themes.update(text_result.key_themes)
        return SessionInsights(
            session_id=session_id,
            turns=len(record.units),
            emotions=tuple(emotions),
            distortions=dict(distortions.most_common()),
            themes=dict(themes.most_common()),
            nonverbal=tuple(self._nonverbal_notes(record)),
            errors=tuple(errors),
            summary=record.summary,
        )

    async def complete_session(self, session_id: str) -> ScoreSummary:
        record = await self.get_session(session_id)
        if not record.units:
            raise AssessmentIncompleteError(session_id, ["turn-1"])
        summary = await self._aggregator.finalize(session_id)
        self._history.pop(session_id, None)
        return summary

    async def delete_session(self, session_id: str) -> None:
        await self.get_session(session_id)
        self._history.pop(session_id, None)
        await self._aggregator.close_session(session_id)
        logger.info("Deleted CBT session %s", session_id)

    async def _open_turn(self, session_id: str, message: str) -> str:
        """Append the next turn unit; concurrent senders each get their own id."""

        for _ in range(MAX_TURN_ATTEMPTS):
            record = await self.get_session(session_id)
            if record.summary is not None:
                raise SessionClosedError(session_id)
            turn_id = f"turn-{len(record.units) + 1}"
            unit = UnitSpec(unit_id=turn_id, prompt=message, kind=UnitKind.OPEN_TEXT)
            if await self._aggregator.add_unit(session_id, unit):
                return turn_id
            logger.debug("Turn id %s taken in session %s; retrying", turn_id, session_id)
        raise RuntimeError(f"Could not allocate a turn in session {session_id}")

    async def _analyse(self, session_id: str, turn_id: str, message: str) -> TextAnalysis | None:
        try:
            analysis = await self._text.analyze_async(message)
        except AnalysisError as exc:
            logger.warning("Text analysis failed for %s/%s: %s", session_id, turn_id, exc)
            await self._aggregator.apply_result(
                session_id, turn_id, Modality.TEXT, error=describe_failure(Modality.TEXT, exc)
            )
            return None
        await self._aggregator.apply_result(session_id, turn_id, Modality.TEXT, analysis)
        return analysis

    def _dispatch_media(
        self,
        session_id: str,
        turn_id: str,
        audio_locator: str | None,
        video_locator: str | None,
    ) -> None:
        requested = (
            (Modality.VIDEO, self._video, video_locator),
            (Modality.AUDIO, self._audio, audio_locator),
        )
        for modality, analyzer, locator in requested:
            if not locator or analyzer is None:
                continue
            try:
                future = analyzer.analyze_async(
                    locator, key=f"{session_id}:{turn_id}:{modality.value}"
                )
            except AnalysisError as exc:
                logger.warning(
                    "%s analysis for %s/%s not started: %s",
                    modality.value,
                    session_id,
                    turn_id,
                    exc,
                )
                continue
            self._aggregator.attach(session_id, turn_id, modality, future)

    @staticmethod
    def _nonverbal_notes(record: SessionRecord) -> list[str]:
        notes = []
        for unit in record.units:
            entry = record.responses.get(unit.unit_id)
            if entry is None:
                continue
            for modality, result in decode_insights(entry).items():
                if modality in (Modality.AUDIO, Modality.VIDEO):
                    notes.append(f"{unit.unit_id} {describe_result(result)}")
        return notes[-6:]


__all__ = ["CbtReply", "CbtSessionOrchestrator", "SessionInsights"]
