"""
Gamification router: streaks, XP and levels.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from taskquest.auth.dependencies import get_current_user_id
from taskquest.models.requests import AwardXPRequest, StreakUpdateRequest
from taskquest.services.gamification import GamificationService
from taskquest.storage import get_storage
from taskquest.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("")
async def get_gamification_state(user_id: str = Depends(get_current_user_id)):
    service = GamificationService(get_storage(), user_id)
    return {
        "success": True,
        "data": {"streak": service.get_streak(), "progress": service.get_progress()},
    }


@router.post("/streak")
async def update_streak(
    request: Optional[StreakUpdateRequest] = None,
    user_id: str = Depends(get_current_user_id),
):
    """Record activity for a day (today when omitted)."""
    activity_date = request.activity_date if request else None
    try:
        streak = GamificationService(get_storage(), user_id).update_streak(activity_date)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"success": True, "data": streak}


@router.post("/xp")
async def award_xp(request: AwardXPRequest, user_id: str = Depends(get_current_user_id)):
    progress = GamificationService(get_storage(), user_id).award_xp(request.amount, request.reason)
    return {"success": True, "data": progress}
