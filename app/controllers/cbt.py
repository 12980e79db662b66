"""CBT conversation endpoints."""

from fastapi import APIRouter, status

from app.controllers.dependencies import CbtDep
from app.views.cbt import (
    CbtAudioMessageRequest,
    CbtMessageRequest,
    CbtReplyResponse,
    CbtSessionResponse,
    SessionInsightsResponse,
)
from app.views.common import CreateSessionRequest, ScoreSummaryView

router = APIRouter(prefix="/cbt", tags=["cbt"])


@router.post(
    "/sessions",
    response_model=CbtSessionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_cbt_session(payload: CreateSessionRequest, orchestrator: CbtDep) -> CbtSessionResponse:
    record = await orchestrator.create_session(payload.userId)
    return CbtSessionResponse(
        sessionId=record.session_id,
        userId=record.user_id,
        createdAt=record.created_at,
    )


@router.post("/sessions/{session_id}/messages", response_model=CbtReplyResponse)
async def send_message(
    session_id: str,
    payload: CbtMessageRequest,
    orchestrator: CbtDep,
) -> CbtReplyResponse:
    """Analyse a typed message and return the therapist reply."""

    reply = await orchestrator.process_user_message(
        session_id,
        payload.text,
        audio_locator=payload.audioLocator,
        video_locator=payload.videoLocator,
    )
    return CbtReplyResponse.from_reply(reply)


@router.post("/sessions/{session_id}/audio-messages", response_model=CbtReplyResponse)
async def send_audio_message(
    session_id: str,
    payload: CbtAudioMessageRequest,
    orchestrator: CbtDep,
) -> CbtReplyResponse:
    """Transcribe a recorded message, then answer it like a typed one.

    Waits for the transcription job, so this call can take a while.
    """

    reply = await orchestrator.process_audio_message(
        session_id,
        payload.audioLocator,
        video_locator=payload.videoLocator,
    )
    return CbtReplyResponse.from_reply(reply)


@router.get("/sessions/{session_id}/insights", response_model=SessionInsightsResponse)
async def get_insights(session_id: str, orchestrator: CbtDep) -> SessionInsightsResponse:
    insights = await orchestrator.session_insights(session_id)
    return SessionInsightsResponse.from_insights(insights)


@router.post("/sessions/{session_id}/complete", response_model=ScoreSummaryView)
async def complete_cbt_session(session_id: str, orchestrator: CbtDep) -> ScoreSummaryView:
    summary = await orchestrator.complete_session(session_id)
    return ScoreSummaryView.from_summary(summary)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_cbt_session(session_id: str, orchestrator: CbtDep) -> None:
    await orchestrator.delete_session(session_id)
