"""CBT conversation flow: analysis, retrieval context and synthesis."""

from __future__ import annotations

import asyncio

import pytest

from app.pipelines.analysis import (
    AnalysisValidationError,
    AudioAnalyzer,
    Modality,
    TextAnalyzer,
    Transcriber,
    VideoAnalyzer,
)
from app.pipelines.analysis.text import EMOTION_PROMPT
from app.pipelines.orchestration import CbtSessionOrchestrator, MultimodalSynthesizer
from app.pipelines.orchestration.prompts import CBT_SYSTEM, SYNTHESIS_SYSTEM
from app.pipelines.retrieval import CONTEXT_HEADER, ContextIndex, InMemoryVectorStore
from app.pipelines.sessions import (
    AssessmentIncompleteError,
    InMemorySessionStore,
    InvalidResponseError,
    SessionAggregator,
    SessionClosedError,
    SessionNotFoundError,
)
from app.services.embeddings import EmbeddingError
from conftest import FakeEmbedder, ScriptedProvider, burnout_llm, hume_predictions


class BrokenEmbedder:
    async def embed(self, text):
        raise EmbeddingError("embedding model unavailable")


def _orchestrator(llm, poller, *, embedder=None, audio=None, transcript=None, aggregator=None):
    index = ContextIndex(
        embedder or FakeEmbedder(),
        InMemoryVectorStore(),
        relevance_threshold=0.1,
        max_results=5,
        deletion_enabled=True,
    )
    transcribe_provider = ScriptedProvider(
        ["SUCCEEDED"],
        result={"job_name": "j", "document": {"results": {"transcripts": [{"transcript": transcript or ""}]}}},
    )
    orchestrator = CbtSessionOrchestrator(
        aggregator or SessionAggregator(InMemorySessionStore()),
        TextAnalyzer(llm, model_id="m"),
        llm,
        index,
        MultimodalSynthesizer(llm),
        video=VideoAnalyzer(ScriptedProvider(["SUCCEEDED"], result=[]), poller),
        audio=AudioAnalyzer(audio or ScriptedProvider(["SUCCEEDED"], result=hume_predictions(("hi", {"Joy": 0.4}))), poller),
        transcriber=Transcriber(transcribe_provider, poller),
    )
    return orchestrator, index


def test_message_is_analysed_indexed_and_answered(poller_factory):
    llm = burnout_llm()

    async def scenario():
        orchestrator, index = _orchestrator(llm, poller_factory())
        await index.seed_interventions()
        earlier = await orchestrator.create_session("u1")
        await orchestrator.process_user_message(earlier.session_id, "I always fail at work and everyone sees it")

        current = await orchestrator.create_session("u1")
        reply = await orchestrator.process_user_message(
            current.session_id, "I always fail at work, nothing ever goes right"
        )
        return reply, current.session_id

    reply, _ = asyncio.run(scenario())

    assert reply.turn_id == "turn-1"
    assert reply.response == llm.reply
    assert reply.analysis.primary_emotion == "sadness"
    assert reply.recurring_patterns == ("overgeneralization",)
    assert any("overgeneralization" in text for text in reply.interventions)
    assert reply.used_history

    system_prompt, messages = llm.conversations[-1]
    assert system_prompt.startswith(CBT_SYSTEM)
    assert CONTEXT_HEADER in system_prompt
    assert "overgeneralization" in system_prompt
    assert messages == [{"role": "user", "text": "I always fail at work, nothing ever goes right"}]


def test_turns_accumulate_history_and_insights(poller_factory):
    llm = burnout_llm()

    async def scenario():
        aggregator = SessionAggregator(InMemorySessionStore())
        orchestrator, _ = _orchestrator(llm, poller_factory(), aggregator=aggregator)
        sid = (await orchestrator.create_session("u1")).session_id
        await orchestrator.process_user_message(sid, "Work is exhausting")
        second = await orchestrator.process_user_message(
            sid, "I can't sleep", audio_locator="s3://media/a.wav"
        )
        for _ in range(50):
            await asyncio.sleep(0)
        await aggregator.drain(sid)
        insights = await orchestrator.session_insights(sid)
        return second, insights

    second, insights = asyncio.run(scenario())

    assert second.turn_id == "turn-2"
    _, messages = llm.conversations[-1]
    assert [m["role"] for m in messages] == ["user", "assistant", "user"]
    assert insights.turns == 2
    assert insights.emotions == ("sadness", "sadness")
    assert insights.distortions == {"overgeneralization": 2}
    assert insights.themes == {"work": 2, "fatigue": 2}
    assert any("voice tone" in note for note in insights.nonverbal)


def test_text_analysis_failure_is_recorded_and_reply_still_sent(poller_factory):
    llm = burnout_llm(**{EMOTION_PROMPT: "no idea"})

    async def scenario():
        orchestrator, _ = _orchestrator(llm, poller_factory())
        sid = (await orchestrator.create_session("u1")).session_id
        reply = await orchestrator.process_user_message(sid, "Meh.")
        return reply, await orchestrator.get_session(sid)

    reply, record = asyncio.run(scenario())

    assert reply.analysis is None
    assert reply.response == llm.reply
    assert Modality.TEXT in record.entry("turn-1").errors


def test_retrieval_outage_does_not_block_the_reply(poller_factory):
    llm = burnout_llm()

    async def scenario():
        orchestrator, _ = _orchestrator(llm, poller_factory(), embedder=BrokenEmbedder())
        sid = (await orchestrator.create_session("u1")).session_id
        return await orchestrator.process_user_message(sid, "I feel stuck")

    reply = asyncio.run(scenario())

    assert reply.response == llm.reply
    assert reply.used_history is False
    assert reply.interventions == ()


def test_audio_message_is_transcribed_first(poller_factory):
    llm = burnout_llm()

    async def scenario():
        orchestrator, _ = _orchestrator(llm, poller_factory(), transcript="I keep messing up")
        sid = (await orchestrator.create_session("u1")).session_id
        return await orchestrator.process_audio_message(sid, "s3://media/turn.wav")

    reply = asyncio.run(scenario())

    _, messages = llm.conversations[-1]
    assert messages[-1]["text"] == "I keep messing up"
    assert reply.turn_id == "turn-1"


def test_silent_recording_is_rejected(poller_factory):
    async def scenario():
        orchestrator, _ = _orchestrator(burnout_llm(), poller_factory(), transcript="")
        sid = (await orchestrator.create_session("u1")).session_id
        await orchestrator.process_audio_message(sid, "s3://media/turn.wav")

    with pytest.raises(InvalidResponseError):
        asyncio.run(scenario())


def test_complete_session_runs_synthesis_once(poller_factory):
    llm = burnout_llm()

    async def scenario():
        orchestrator, _ = _orchestrator(llm, poller_factory())
        sid = (await orchestrator.create_session("u1")).session_id
        with pytest.raises(AssessmentIncompleteError):
            await orchestrator.complete_session(sid)
        await orchestrator.process_user_message(sid, "Work is exhausting")
        first = await orchestrator.complete_session(sid)
        second = await orchestrator.complete_session(sid)
        return first, second

    first, second = asyncio.run(scenario())

    assert first is second
    assert first.score == pytest.approx(0.8)
    assert first.details["dominantEmotion"] == "sadness"
    assert llm.count(SYNTHESIS_SYSTEM) == 1


def test_invalid_input_is_rejected(poller_factory):
    async def scenario():
        orchestrator, _ = _orchestrator(burnout_llm(), poller_factory())
        sid = (await orchestrator.create_session("u1")).session_id
        with pytest.raises(InvalidResponseError):
            await orchestrator.process_user_message(sid, "   ")
        with pytest.raises(AnalysisValidationError):
            await orchestrator.process_user_message(sid, "hi", video_locator="https://x/v.mp4")
        with pytest.raises(SessionNotFoundError):
            await orchestrator.process_user_message("missing", "hi")
        return await orchestrator.get_session(sid)

    record = asyncio.run(scenario())

    assert record.units == ()


def test_messages_after_completion_are_rejected(poller_factory):
    llm = burnout_llm()

    async def scenario():
        orchestrator, _ = _orchestrator(llm, poller_factory(), transcript="one more thing")
        sid = (await orchestrator.create_session("u1")).session_id
        await orchestrator.process_user_message(sid, "Work is exhausting")
        await orchestrator.complete_session(sid)
        sent = len(llm.conversations)
        with pytest.raises(SessionClosedError):
            await orchestrator.process_user_message(sid, "One more thing")
        with pytest.raises(SessionClosedError):
            await orchestrator.process_audio_message(sid, "s3://media/late.wav")
        return sent, await orchestrator.get_session(sid)

    sent, record = asyncio.run(scenario())

    assert len(llm.conversations) == sent
    assert [unit.unit_id for unit in record.units] == ["turn-1"]


class YieldingStore(InMemorySessionStore):
    """Suspends before each unit append, like a networked store."""

    async def add_unit(self, session_id, unit):
        await asyncio.sleep(0)
        return await super().add_unit(session_id, unit)


def test_concurrent_messages_get_distinct_turns(poller_factory):
    async def scenario():
        aggregator = SessionAggregator(YieldingStore())
        orchestrator, _ = _orchestrator(burnout_llm(), poller_factory(), aggregator=aggregator)
        sid = (await orchestrator.create_session("u1")).session_id
        replies = await asyncio.gather(
            orchestrator.process_user_message(sid, "First thought"),
            orchestrator.process_user_message(sid, "Second thought"),
            orchestrator.process_user_message(sid, "Third thought"),
        )
        return replies, await orchestrator.get_session(sid)

    replies, record = asyncio.run(scenario())

    assert sorted(reply.turn_id for reply in replies) == ["turn-1", "turn-2", "turn-3"]
    texts = {record.entry(reply.turn_id).user_text for reply in replies}
    assert texts == {"First thought", "Second thought", "Third thought"}


def test_deleted_session_is_gone(poller_factory):
    async def scenario():
        aggregator = SessionAggregator(InMemorySessionStore())
        orchestrator, _ = _orchestrator(burnout_llm(), poller_factory(), aggregator=aggregator)
        sid = (await orchestrator.create_session("u1")).session_id
        await orchestrator.process_user_message(sid, "Work is exhausting")
        await orchestrator.delete_session(sid)
        with pytest.raises(SessionNotFoundError):
            await orchestrator.get_session(sid)
        with pytest.raises(SessionNotFoundError):
            await orchestrator.delete_session(sid)
        return aggregator.active_sessions()

    assert asyncio.run(scenario()) == set()
