"""
Dashboard router: weekly overview for the home screen.
"""

from fastapi import APIRouter, Depends

from taskquest.auth.dependencies import get_current_user_id
from taskquest.config import get_settings
from taskquest.services.dashboard import DashboardService
from taskquest.storage import get_storage
from taskquest.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("")
async def get_dashboard(user_id: str = Depends(get_current_user_id)):
    """
    Task and XP counts for this and last week, streaks, scores and their
    trends, plus a 7-day completion chart.

    Sources that fail are listed under ``errors``; the rest still render.
    """
    service = DashboardService(
        get_storage(),
        user_id,
        persist=get_settings().persist_insights,
    )
    overview = await service.get_overview()
    logger.info("dashboard_served", failed_sources=len(overview.get("errors", {})))
    return {"success": True, "data": overview}
