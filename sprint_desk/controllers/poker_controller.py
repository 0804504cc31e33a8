# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Controller: Planning-poker endpoints — sessions, participants, rounds and
the live event stream.
Thin HTTP layer — delegates ALL logic to PokerService.
"""

import json
from typing import Iterator, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse

from sprint_desk.core.dependencies import get_poker_service
from sprint_desk.core.errors import DOMAIN_ERRORS, CollaboratorError, detail_for, status_for
from sprint_desk.core.logging import get_logger
from sprint_desk.models.domain import PokerRound, TimerState
from sprint_desk.schemas.poker import (
    JoinRequest,
    OwnerActionRequest,
    ResetRequest,
    SessionCreateRequest,
    StoryRequest,
    TimerRequest,
    VoteRequest,
)
from sprint_desk.services.poker_service import PokerService

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/poker", tags=["Planning Poker"])


def sse_message(data: dict, event: Optional[str] = None) -> str:
    prefix = f"event: {event}\n" if event else ""
    return f"{prefix}data: {json.dumps(data)}\n\n"


# ── Sessions ──

@router.post("/sessions", status_code=201)
def create_session(
    payload: SessionCreateRequest,
    service: PokerService = Depends(get_poker_service),
):
    """Create a session, or return the existing one for a known session_id."""
    try:
        return service.create_session(payload.owner_name, payload.session_id)
    except DOMAIN_ERRORS as e:
        raise HTTPException(status_code=status_for(e), detail=detail_for(e))


@router.get("/sessions/{session_id}")
def get_session(
    session_id: str,
    viewer_id: Optional[str] = Query(default=None, description="Participant id of the caller"),
    service: PokerService = Depends(get_poker_service),
):
    try:
        return service.get_room(session_id, viewer_id)
    except DOMAIN_ERRORS as e:
        raise HTTPException(status_code=status_for(e), detail=detail_for(e))


@router.post("/sessions/{session_id}/join")
def join_session(
    session_id: str,
    payload: JoinRequest,
    service: PokerService = Depends(get_poker_service),
):
    """Join under a display name; a known participant_id reconnects."""
    try:
        return service.join(session_id, payload.name, payload.participant_id)
    except DOMAIN_ERRORS as e:
        raise HTTPException(status_code=status_for(e), detail=detail_for(e))


# ── Round ──

@router.post("/sessions/{session_id}/vote")
def cast_vote(
    session_id: str,
    payload: VoteRequest,
    service: PokerService = Depends(get_poker_service),
):
    """Vote; sending the same value again withdraws it."""
    try:
        return service.vote(session_id, payload.participant_id, payload.vote)
    except DOMAIN_ERRORS as e:
        raise HTTPException(status_code=status_for(e), detail=detail_for(e))


@router.post("/sessions/{session_id}/reveal")
def reveal_votes(
    session_id: str,
    payload: OwnerActionRequest,
    service: PokerService = Depends(get_poker_service),
):
    try:
        return service.reveal(session_id, payload.actor)
    except DOMAIN_ERRORS as e:
        raise HTTPException(status_code=status_for(e), detail=detail_for(e))


@router.post("/sessions/{session_id}/reset")
def reset_round(
    session_id: str,
    payload: ResetRequest,
    service: PokerService = Depends(get_poker_service),
):
    try:
        return service.reset(session_id, payload.actor, archive=payload.archive)
    except DOMAIN_ERRORS as e:
        raise HTTPException(status_code=status_for(e), detail=detail_for(e))


@router.post("/sessions/{session_id}/end")
def end_session(
    session_id: str,
    payload: OwnerActionRequest,
    service: PokerService = Depends(get_poker_service),
):
    try:
        return service.end(session_id, payload.actor)
    except DOMAIN_ERRORS as e:
        raise HTTPException(status_code=status_for(e), detail=detail_for(e))


@router.post("/sessions/{session_id}/story")
def set_story(
    session_id: str,
    payload: StoryRequest,
    service: PokerService = Depends(get_poker_service),
):
    try:
        return service.set_story(session_id, payload.actor, payload.story)
    except DOMAIN_ERRORS as e:
        raise HTTPException(status_code=status_for(e), detail=detail_for(e))


@router.post("/sessions/{session_id}/timer", response_model=TimerState)
def start_timer(
    session_id: str,
    payload: TimerRequest,
    service: PokerService = Depends(get_poker_service),
):
    """Advisory countdown; expiry never reveals votes by itself."""
    try:
        return service.start_timer(session_id, payload.actor, payload.seconds)
    except DOMAIN_ERRORS as e:
        raise HTTPException(status_code=status_for(e), detail=detail_for(e))


@router.get("/sessions/{session_id}/rounds", response_model=list[PokerRound])
def list_rounds(
    session_id: str,
    service: PokerService = Depends(get_poker_service),
):
    """Rounds archived by this service instance."""
    try:
        return service.rounds(session_id)
    except DOMAIN_ERRORS as e:
        raise HTTPException(status_code=status_for(e), detail=detail_for(e))


# ── Live stream ──

@router.get("/sessions/{session_id}/events")
def stream_events(
    session_id: str,
    viewer_id: Optional[str] = Query(default=None),
    service: PokerService = Depends(get_poker_service),
):
    """Server-sent events: one room snapshot per change, until the session ends."""
    try:
        service.get_room(session_id, viewer_id)
    except DOMAIN_ERRORS as e:
        raise HTTPException(status_code=status_for(e), detail=detail_for(e))

    def events() -> Iterator[str]:
        try:
            for snapshot in service.watch(session_id, viewer_id):
                yield sse_message(snapshot, event="snapshot")
        except CollaboratorError as e:
            logger.warning("Event stream interrupted: session_id=%s, error=%s", session_id, e)
            yield sse_message({"error": "store_unavailable", "detail": str(e)}, event="error")

    return StreamingResponse(events(), media_type="text/event-stream")
