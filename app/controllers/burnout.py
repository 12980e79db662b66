"""Burnout assessment endpoints.

Answers are stored immediately; video and audio analysis run in the
background and the assessment is scored automatically once every
question (including vlog analysis) is in. ``POST .../complete`` returns
the stored result, computing it first when needed.
"""

import logging

from fastapi import APIRouter, status

from app.controllers.dependencies import BurnoutDep
from app.views.burnout import (
    AssessmentSessionResponse,
    AssessmentStatusResponse,
    RecordResponseRequest,
    RecordResponseResponse,
)
from app.views.common import CreateSessionRequest, ScoreSummaryView

router = APIRouter(prefix="/burnout", tags=["burnout"])

logger = logging.getLogger(__name__)


@router.post(
    "/sessions",
    response_model=AssessmentSessionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_assessment(
    payload: CreateSessionRequest,
    orchestrator: BurnoutDep,
) -> AssessmentSessionResponse:
    """Generate a question set and open an assessment for the user."""

    record = await orchestrator.create_assessment_session(payload.userId)
    return AssessmentSessionResponse.from_record(record)


@router.get("/sessions/{session_id}", response_model=AssessmentSessionResponse)
async def get_assessment(session_id: str, orchestrator: BurnoutDep) -> AssessmentSessionResponse:
    record = await orchestrator.get_session(session_id)
    return AssessmentSessionResponse.from_record(record)


@router.post(
    "/sessions/{session_id}/responses/{question_id}",
    response_model=RecordResponseResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def record_response(
    session_id: str,
    question_id: str,
    payload: RecordResponseRequest,
    orchestrator: BurnoutDep,
) -> RecordResponseResponse:
    """Store an answer; media analysis continues after the response is sent."""

    recorded = await orchestrator.record_response(
        session_id,
        question_id,
        payload.response,
        video_locator=payload.videoLocator,
        audio_locator=payload.audioLocator,
    )
    complete = await orchestrator.is_complete(session_id)
    return RecordResponseResponse(recorded=recorded, complete=complete)


@router.get("/sessions/{session_id}/status", response_model=AssessmentStatusResponse)
async def assessment_status(session_id: str, orchestrator: BurnoutDep) -> AssessmentStatusResponse:
    record = await orchestrator.get_session(session_id)
    outstanding = [
        unit.unit_id
        for unit in record.units
        if (entry := record.entry(unit.unit_id)) is None or not entry.answered
    ]
    return AssessmentStatusResponse(
        sessionId=session_id,
        complete=not outstanding,
        outstanding=outstanding,
    )


@router.post("/sessions/{session_id}/complete", response_model=ScoreSummaryView)
async def complete_assessment(session_id: str, orchestrator: BurnoutDep) -> ScoreSummaryView:
    summary = await orchestrator.complete_assessment(session_id)
    logger.info("Burnout session %s scored %.1f", session_id, summary.score)
    return ScoreSummaryView.from_summary(summary)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_assessment(session_id: str, orchestrator: BurnoutDep) -> None:
    await orchestrator.delete_session(session_id)
