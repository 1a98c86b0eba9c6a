"""
SHOTCOACH Feedback Service Router

Endpoints for a user's shooting history and progress across sessions.
"""

import logging

from fastapi import APIRouter, HTTPException

from shared.utils import success_response
from analysis_service.pipeline import get_analysis_pipeline

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/progress/{user_id}")
async def get_progress(user_id: str):
    """Progress summary (persistent, resolved and new issues) with insights."""
    progress = get_analysis_pipeline().get_progress(user_id)
    return success_response(data=progress, message="Progress summary")


@router.get("/sessions/{user_id}")
async def get_sessions(user_id: str, limit: int = 20):
    """Most recent shooting sessions, newest first."""
    if limit <= 0:
        raise HTTPException(status_code=400, detail="limit must be positive")

    sessions = get_analysis_pipeline().sessions.get_sessions_for_user(user_id)
    recent = list(reversed(sessions))[:limit]

    return success_response(data={
        "user_id": user_id,
        "total": len(sessions),
        "sessions": [session.to_dict() for session in recent],
    })
