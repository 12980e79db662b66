"""HTTP surface: routing, status mapping and the media upload."""

from __future__ import annotations

import time
from contextlib import ExitStack

import pytest
from fastapi.testclient import TestClient

from app.controllers.dependencies import (
    get_aggregator,
    get_burnout_orchestrator,
    get_cbt_orchestrator,
    get_context_index,
)
from app.main import app
from app.pipelines.analysis import (
    AudioAnalyzer,
    JobPoller,
    TextAnalyzer,
    Transcriber,
    VideoAnalyzer,
)
from app.pipelines.orchestration import (
    BurnoutAssessmentOrchestrator,
    BurnoutScorer,
    CbtSessionOrchestrator,
    MultimodalSynthesizer,
)
from app.pipelines.orchestration.prompts import SYNTHESIS_SYSTEM
from app.pipelines.retrieval import ContextIndex, InMemoryVectorStore
from app.pipelines.sessions import (
    AssessmentDomain,
    InMemorySessionStore,
    SessionAggregator,
    UnitKind,
    UnitSpec,
)
from app.services.llm_client import LlmInvocationError
from conftest import (
    FakeEmbedder,
    FakeLlm,
    GatedProvider,
    ScriptedProvider,
    burnout_llm,
    rekognition_faces,
)

UNITS = (
    UnitSpec("work_std_1", "I feel emotionally drained by my work.", UnitKind.LIKERT, AssessmentDomain.WORK),
    UnitSpec("work_multi_1", "Describe a hard day at work.", UnitKind.VLOG, AssessmentDomain.WORK),
)


class FixedQuestions:
    async def generate(self):
        return UNITS


class UnreachableLlm(FakeLlm):
    async def converse(self, *, system_prompt, messages, max_tokens=None):
        raise LlmInvocationError("model endpoint unreachable")


class Harness:
    def __init__(self, llm: FakeLlm, *, duplicate_policy: str = "allow") -> None:
        self.llm = llm
        self.video = GatedProvider(result=rekognition_faces({"SAD": 70.0}))
        self.aggregator = SessionAggregator(InMemorySessionStore())
        self.index = ContextIndex(
            FakeEmbedder(),
            InMemoryVectorStore(),
            relevance_threshold=0.1,
            deletion_enabled=True,
        )
        poller = JobPoller(poll_interval=0, pool_size=4, duplicate_policy=duplicate_policy)
        video = VideoAnalyzer(self.video, poller)
        audio = AudioAnalyzer(ScriptedProvider(["SUCCEEDED"], result=[]), poller)
        self.burnout = BurnoutAssessmentOrchestrator(
            self.aggregator, FixedQuestions(), BurnoutScorer(llm), video, audio
        )
        self.cbt = CbtSessionOrchestrator(
            self.aggregator,
            TextAnalyzer(llm, model_id="m"),
            llm,
            self.index,
            MultimodalSynthesizer(llm),
            video=video,
            audio=audio,
            transcriber=Transcriber(ScriptedProvider(["FAILED"]), poller),
        )

    def install(self) -> None:
        app.dependency_overrides[get_aggregator] = lambda: self.aggregator
        app.dependency_overrides[get_context_index] = lambda: self.index
        app.dependency_overrides[get_burnout_orchestrator] = lambda: self.burnout
        app.dependency_overrides[get_cbt_orchestrator] = lambda: self.cbt


@pytest.fixture
def harness_factory():
    """Install fake orchestrators and hand back a running client."""

    with ExitStack() as stack:

        def _make(llm: FakeLlm | None = None, **kwargs) -> tuple[TestClient, Harness]:
            harness = Harness(llm or burnout_llm(), **kwargs)
            harness.install()
            client = stack.enter_context(TestClient(app))
            stack.callback(harness.video.release)
            return client, harness

        yield _make

    app.dependency_overrides.clear()


def _wait_for_completion(client: TestClient, session_id: str, attempts: int = 100) -> dict:
    for _ in range(attempts):
        body = client.get(f"/burnout/sessions/{session_id}/status").json()
        if body["complete"]:
            return body
        time.sleep(0.01)
    return body


def test_health_and_metrics(harness_factory):
    client, _ = harness_factory()

    assert client.get("/health").json()["status"] == "healthy"
    assert client.get("/").status_code == 200

    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "http_requests_total" in metrics.text


def test_burnout_flow_over_http(harness_factory):
    client, harness = harness_factory()

    created = client.post("/burnout/sessions", json={"userId": "u1"})
    assert created.status_code == 201
    session = created.json()
    sid = session["sessionId"]
    assert [q["questionId"] for q in session["questions"]] == ["work_std_1", "work_multi_1"]

    answered = client.post(f"/burnout/sessions/{sid}/responses/work_std_1", json={"response": 4})
    assert answered.status_code == 202
    assert answered.json() == {"recorded": True, "complete": False}

    vlog = client.post(
        f"/burnout/sessions/{sid}/responses/work_multi_1",
        json={"videoLocator": "s3://media/u1/vlog.mp4"},
    )
    assert vlog.status_code == 202

    status = client.get(f"/burnout/sessions/{sid}/status").json()
    assert status["outstanding"] == ["work_multi_1"]

    early = client.post(f"/burnout/sessions/{sid}/complete")
    assert early.status_code == 409
    assert early.json()["code"] == "AssessmentIncompleteError"

    harness.video.release()
    assert _wait_for_completion(client, sid)["complete"]

    result = client.post(f"/burnout/sessions/{sid}/complete")
    assert result.status_code == 200
    assert result.json()["score"] == 6.5

    fetched = client.get(f"/burnout/sessions/{sid}").json()
    assert fetched["completed"] is True
    assert fetched["result"]["score"] == 6.5

    late = client.post(f"/burnout/sessions/{sid}/responses/work_std_1", json={"response": 1})
    assert late.status_code == 409
    assert late.json()["code"] == "SessionClosedError"

    assert client.delete(f"/burnout/sessions/{sid}").status_code == 204
    assert client.get(f"/burnout/sessions/{sid}").status_code == 404


@pytest.mark.parametrize(
    ("question_id", "body", "expected"),
    [
        ("work_std_1", {"response": 9}, 400),
        ("work_std_1", {"response": 2, "audioLocator": "ftp://x/a.wav"}, 400),
        ("work_multi_1", {}, 400),
        ("unknown", {"response": 2}, 404),
    ],
)
def test_burnout_rejections(harness_factory, question_id, body, expected):
    client, _ = harness_factory()
    sid = client.post("/burnout/sessions", json={"userId": "u1"}).json()["sessionId"]

    response = client.post(f"/burnout/sessions/{sid}/responses/{question_id}", json=body)

    assert response.status_code == expected
    assert "detail" in response.json()


def test_unknown_sessions_are_404(harness_factory):
    client, _ = harness_factory()

    assert client.get("/burnout/sessions/nope").status_code == 404
    assert client.post("/cbt/sessions/nope/messages", json={"text": "hello"}).status_code == 404
    assert client.get("/cbt/sessions/nope/insights").status_code == 404


def test_duplicate_submission_is_conflict(harness_factory):
    client, _ = harness_factory(duplicate_policy="reject")
    sid = client.post("/burnout/sessions", json={"userId": "u1"}).json()["sessionId"]
    body = {"videoLocator": "s3://media/u1/vlog.mp4"}

    first = client.post(f"/burnout/sessions/{sid}/responses/work_multi_1", json=body)
    second = client.post(f"/burnout/sessions/{sid}/responses/work_multi_1", json=body)

    assert first.status_code == 202
    assert second.status_code == 409
    assert second.json()["code"] == "DuplicateSubmissionError"


def test_cbt_flow_over_http(harness_factory):
    client, harness = harness_factory()

    created = client.post("/cbt/sessions", json={"userId": "u1"})
    assert created.status_code == 201
    sid = created.json()["sessionId"]

    assert client.post(f"/cbt/sessions/{sid}/complete").status_code == 409

    reply = client.post(f"/cbt/sessions/{sid}/messages", json={"text": "Work is exhausting"})
    assert reply.status_code == 200
    body = reply.json()
    assert body["turnId"] == "turn-1"
    assert body["response"] == harness.llm.reply
    assert body["analysis"]["primaryEmotion"] == "sadness"

    blank = client.post(f"/cbt/sessions/{sid}/messages", json={"text": "   "})
    assert blank.status_code == 400

    insights = client.get(f"/cbt/sessions/{sid}/insights").json()
    assert insights["turns"] == 1
    assert insights["distortions"] == {"overgeneralization": 1}

    done = client.post(f"/cbt/sessions/{sid}/complete")
    assert done.status_code == 200
    assert done.json()["details"]["dominantEmotion"] == "sadness"

    late = client.post(f"/cbt/sessions/{sid}/messages", json={"text": "One more thing"})
    assert late.status_code == 409
    assert late.json()["code"] == "SessionClosedError"

    assert client.delete(f"/cbt/sessions/{sid}").status_code == 204
    assert client.get(f"/cbt/sessions/{sid}/insights").status_code == 404
    assert client.delete(f"/cbt/sessions/{sid}").status_code == 404


def test_failed_transcription_is_bad_gateway(harness_factory):
    client, _ = harness_factory()
    sid = client.post("/cbt/sessions", json={"userId": "u1"}).json()["sessionId"]

    response = client.post(
        f"/cbt/sessions/{sid}/audio-messages", json={"audioLocator": "s3://media/u1/turn.wav"}
    )

    assert response.status_code == 502
    assert response.json()["code"] == "ProviderFailureError"


@pytest.mark.parametrize(
    ("llm", "path"),
    [
        (UnreachableLlm(burnout_llm().responses), "messages"),
        (burnout_llm(**{SYNTHESIS_SYSTEM: "I could not decide."}), "complete"),
    ],
)
def test_model_failures_are_bad_gateway(harness_factory, llm, path):
    client, _ = harness_factory(llm)
    sid = client.post("/cbt/sessions", json={"userId": "u1"}).json()["sessionId"]
    if path == "complete":
        client.post(f"/cbt/sessions/{sid}/messages", json={"text": "Work is exhausting"})

    response = client.post(f"/cbt/sessions/{sid}/{path}", json={"text": "Work is exhausting"})

    assert response.status_code == 502


def test_media_upload_returns_locator(harness_factory, monkeypatch):
    client, _ = harness_factory()
    sid = client.post("/burnout/sessions", json={"userId": "u1"}).json()["sessionId"]
    uploads = []

    async def fake_upload(session_id, data, *, kind, extension, content_type):
        uploads.append((session_id, kind, extension, content_type, len(data)))
        return f"s3://bucket/sessions/{session_id}/{kind}/clip.{extension}"

    monkeypatch.setattr("app.controllers.media.upload_session_asset", fake_upload)

    response = client.post(
        f"/media/{sid}",
        data={"kind": "audio"},
        files={"media_file": ("clip.wav", b"RIFF....WAVE", "application/octet-stream")},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["locator"] == f"s3://bucket/sessions/{sid}/audio/clip.wav"
    assert body["contentType"] in ("audio/wav", "audio/x-wav")
    assert uploads[0][:3] == (sid, "audio", "wav")


def test_media_upload_rejections(harness_factory, monkeypatch):
    client, _ = harness_factory()
    sid = client.post("/burnout/sessions", json={"userId": "u1"}).json()["sessionId"]

    async def fake_upload(*args, **kwargs):
        raise AssertionError("nothing should be stored")

    monkeypatch.setattr("app.controllers.media.upload_session_asset", fake_upload)

    missing = client.post(
        "/media/nope", data={"kind": "audio"}, files={"media_file": ("a.wav", b"x", "audio/wav")}
    )
    wrong_type = client.post(
        f"/media/{sid}", data={"kind": "video"}, files={"media_file": ("a.wav", b"x", "audio/wav")}
    )
    empty = client.post(
        f"/media/{sid}", data={"kind": "audio"}, files={"media_file": ("a.wav", b"", "audio/wav")}
    )

    assert missing.status_code == 404
    assert wrong_type.status_code == 400
    assert empty.status_code == 400
