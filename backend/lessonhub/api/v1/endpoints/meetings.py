"""
Live room endpoints.
GET /api/v1/sessions/{session_id}/join-window
GET /api/v1/sessions/{session_id}/timer
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from lessonhub.api.dependencies import get_repository
from lessonhub.services.scheduling.time_window import evaluate_join_window
from lessonhub.services.scheduling.timer import compute_timer, countdown
from lessonhub.services.sessions.repository import SessionRepository

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/{session_id}/join-window")
async def get_join_window(session_id: str, repository: SessionRepository = Depends(get_repository)):
    """
    Whether the room may be entered right now. Re-evaluated on every call;
    a denial is a normal response, not an error.
    """
    session = await repository.get(session_id, fresh=True)
    decision = evaluate_join_window(session)
    if not decision.allowed:
        logger.info(f"[JoinWindow] session={session_id} denied: {decision.reason}")
    return {
        "session_id": session_id,
        "status": session.status.value,
        **decision.to_dict(),
    }


@router.get("/{session_id}/timer")
async def get_timer(
    session_id: str,
    started_at: Optional[datetime] = Query(None, description="When the call actually started"),
    repository: SessionRepository = Depends(get_repository),
):
    session = await repository.get(session_id)
    if started_at is not None and started_at.tzinfo is None:
        started_at = started_at.replace(tzinfo=session.scheduled_at.tzinfo)
    return {
        "session_id": session_id,
        "timer": compute_timer(started_at or session.scheduled_at, session.duration_minutes).to_dict(),
        "countdown": countdown(session.scheduled_at).to_dict(),
    }
