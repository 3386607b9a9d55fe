"""
Goals router: per-goal progress, status and completion likelihood.
"""

from fastapi import APIRouter, Depends

from taskquest.auth.dependencies import get_current_user_id
from taskquest.services.goals import GoalAnalyticsService
from taskquest.storage import get_storage
from taskquest.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("")
async def get_goal_analytics(user_id: str = Depends(get_current_user_id)):
    analysis = GoalAnalyticsService(get_storage(), user_id).analyze()
    logger.info("goal_analytics_served", goals=len(analysis["goals"]))
    return {"success": True, "data": analysis}
