"""Session state: merge rules, the aggregator and idempotent finalization."""

from __future__ import annotations

import asyncio

import pytest

from app.pipelines.analysis import AudioAnalysis, EmotionScore, Modality, Utterance, VideoAnalysis
from app.pipelines.sessions import (
    InMemorySessionStore,
    ModalityUpdate,
    ScoreSummary,
    SessionAggregator,
    SessionKind,
    SessionNotFoundError,
    TextUpdate,
    UnitKind,
    UnitSpec,
    merge_entry,
)

LIKERT = UnitSpec(unit_id="work_std_1", prompt="I feel drained.", kind=UnitKind.LIKERT)
VLOG = UnitSpec(unit_id="work_multi_1", prompt="Tell us about work.", kind=UnitKind.VLOG)

VIDEO_PAYLOAD = VideoAnalysis().model_dump_json()


def test_text_and_modality_updates_commute():
    text = TextUpdate(text="[video response]")
    video = ModalityUpdate(modality=Modality.VIDEO, payload=VIDEO_PAYLOAD)

    text_first = merge_entry(merge_entry(None, text, VLOG), video, VLOG)
    video_first = merge_entry(merge_entry(None, video, VLOG), text, VLOG)

    assert text_first == video_first
    assert text_first.answered


def test_vlog_needs_its_video_modality():
    entry = merge_entry(None, TextUpdate(text="[video response]"), VLOG)

    assert not entry.answered
    assert entry.text_response == "[video response]"


def test_error_counts_as_received_and_answered_is_monotone():
    failed = merge_entry(None, ModalityUpdate(modality=Modality.VIDEO, error="video analysis failed: x"), VLOG)
    assert failed.answered
    assert failed.text_response == "video analysis failed: x"

    recovered = merge_entry(failed, ModalityUpdate(modality=Modality.VIDEO, payload=VIDEO_PAYLOAD), VLOG)
    assert recovered.answered
    assert Modality.VIDEO in recovered.insights
    assert Modality.VIDEO not in recovered.errors


def test_failed_required_analysis_shows_next_to_placeholder_text():
    entry = merge_entry(None, TextUpdate(text="[video response]"), VLOG)
    entry = merge_entry(entry, ModalityUpdate(modality=Modality.VIDEO, error="video analysis failed: timeout"), VLOG)

    assert entry.answered
    assert entry.text_response == "[video response] (video analysis failed: timeout)"

    likert = merge_entry(None, TextUpdate(text="4"), LIKERT)
    likert = merge_entry(likert, ModalityUpdate(modality=Modality.AUDIO, error="audio analysis failed: x"), LIKERT)
    assert likert.text_response == "4"


def test_same_modality_is_last_writer_wins():
    first = VideoAnalysis().model_dump_json()
    second = AudioAnalysis(transcript="later").model_dump_json()
    entry = merge_entry(None, ModalityUpdate(modality=Modality.AUDIO, payload=first), LIKERT)
    entry = merge_entry(entry, ModalityUpdate(modality=Modality.AUDIO, payload=second), LIKERT)

    assert entry.insights[Modality.AUDIO] == second


def test_modality_update_needs_exactly_one_outcome():
    with pytest.raises(ValueError):
        ModalityUpdate(modality=Modality.VIDEO)
    with pytest.raises(ValueError):
        ModalityUpdate(modality=Modality.VIDEO, payload="{}", error="x")


class CountingFinalizer:
    def __init__(self) -> None:
        self.calls = 0

    async def __call__(self, record):
        self.calls += 1
        await asyncio.sleep(0)
        return ScoreSummary(score=4.0, explanation="ok", summary=f"{len(record.units)} units")


def test_finalize_runs_once_under_concurrent_calls():
    finalizer = CountingFinalizer()

    async def scenario():
        aggregator = SessionAggregator(InMemorySessionStore())
        aggregator.register_finalizer(SessionKind.BURNOUT, finalizer, auto=False)
        record = await aggregator.create_session("u1", SessionKind.BURNOUT, [LIKERT])
        await aggregator.record_text(record.session_id, LIKERT.unit_id, "3")
        return await asyncio.gather(*(aggregator.finalize(record.session_id) for _ in range(5)))

    summaries = asyncio.run(scenario())

    assert finalizer.calls == 1
    assert len({id(summary) for summary in summaries}) == 1
    assert summaries[0].summary == "1 units"


def test_unknown_session_and_unit_are_reported():
    async def scenario():
        aggregator = SessionAggregator(InMemorySessionStore())
        record = await aggregator.create_session("u1", SessionKind.BURNOUT, [LIKERT])
        missing_session = await aggregator.record_text("nope", LIKERT.unit_id, "1")
        missing_unit = await aggregator.record_text(record.session_id, "nope", "1")
        with pytest.raises(SessionNotFoundError):
            await aggregator.finalize("nope")
        return missing_session, missing_unit

    assert asyncio.run(scenario()) == (False, False)


def test_attached_future_failure_lands_as_error_string():
    async def scenario():
        aggregator = SessionAggregator(InMemorySessionStore())
        record = await aggregator.create_session("u1", SessionKind.BURNOUT, [VLOG])
        future = asyncio.get_running_loop().create_future()
        aggregator.attach(record.session_id, VLOG.unit_id, Modality.VIDEO, future)
        future.set_exception(RuntimeError("rekognition down"))
        await asyncio.sleep(0)
        await aggregator.drain(record.session_id)
        return await aggregator.get(record.session_id)

    record = asyncio.run(scenario())
    entry = record.entry(VLOG.unit_id)

    assert entry.answered
    assert "rekognition down" in entry.errors[Modality.VIDEO]


def test_auto_finalize_after_last_modality_arrives():
    finalizer = CountingFinalizer()

    async def scenario():
        aggregator = SessionAggregator(InMemorySessionStore())
        aggregator.register_finalizer(SessionKind.BURNOUT, finalizer, auto=True)
        record = await aggregator.create_session("u1", SessionKind.BURNOUT, [LIKERT, VLOG])
        sid = record.session_id
        await aggregator.record_text(sid, LIKERT.unit_id, "4")
        await aggregator.record_text(sid, VLOG.unit_id, "[video response]")
        before = await aggregator.is_complete(sid)

        video = VideoAnalysis(faces=())
        audio = AudioAnalysis(utterances=(Utterance(text="hi", emotions=(EmotionScore(label="Joy", score=0.5),)),))
        await aggregator.apply_result(sid, VLOG.unit_id, Modality.AUDIO, audio)
        await aggregator.apply_result(sid, VLOG.unit_id, Modality.VIDEO, video)
        await aggregator.drain(sid)
        explicit = await aggregator.finalize(sid)
        return before, await aggregator.get(sid), explicit

    before, record, explicit = asyncio.run(scenario())

    assert before is False
    assert record.all_units_answered
    assert record.summary is explicit
    assert finalizer.calls == 1


def test_finished_sessions_leave_no_tasks_or_per_session_state():
    finalizer = CountingFinalizer()

    async def scenario():
        aggregator = SessionAggregator(InMemorySessionStore())
        aggregator.register_finalizer(SessionKind.BURNOUT, finalizer, auto=True)
        loop = asyncio.get_running_loop()
        session_ids = []
        for index in range(50):
            record = await aggregator.create_session(f"u{index}", SessionKind.BURNOUT, [LIKERT, VLOG])
            sid = record.session_id
            session_ids.append(sid)
            await aggregator.record_text(sid, LIKERT.unit_id, "2")
            await aggregator.record_text(sid, VLOG.unit_id, "[video response]")
            future = loop.create_future()
            aggregator.attach(sid, VLOG.unit_id, Modality.VIDEO, future)
            future.set_exception(RuntimeError("timeout"))
        await asyncio.sleep(0)
        for sid in session_ids:
            await aggregator.drain(sid)
        summaries = [await aggregator.finalize(sid) for sid in session_ids]
        for _ in range(3):
            await asyncio.sleep(0)
        pending = [task for task in asyncio.all_tasks() if task is not asyncio.current_task()]
        return summaries, pending, aggregator.active_sessions()

    summaries, pending, active = asyncio.run(scenario())

    assert len(summaries) == 50
    assert finalizer.calls == 50
    assert pending == []
    assert active == set()


def test_closed_session_drops_late_results():
    async def scenario():
        aggregator = SessionAggregator(InMemorySessionStore())
        record = await aggregator.create_session("u1", SessionKind.BURNOUT, [VLOG])
        sid = record.session_id
        future = asyncio.get_running_loop().create_future()
        aggregator.attach(sid, VLOG.unit_id, Modality.VIDEO, future)
        deleted = await aggregator.close_session(sid)
        future.set_result(VideoAnalysis())
        await asyncio.sleep(0)
        await aggregator.drain(sid)
        return deleted, await aggregator.get(sid), aggregator.active_sessions()

    deleted, record, active = asyncio.run(scenario())

    assert deleted is True
    assert record is None
    assert active == set()
