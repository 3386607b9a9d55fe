"""
Wellness router: wellness score, burnout risk and work patterns.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from taskquest.auth.dependencies import get_current_user_id
from taskquest.config import get_settings
from taskquest.services.wellness import WellnessService
from taskquest.storage import get_storage
from taskquest.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("")
async def get_wellness(
    user_id: str = Depends(get_current_user_id),
    days: Optional[int] = Query(None, ge=7, le=365, description="History window, defaults to the configured lookback"),
):
    settings = get_settings()
    service = WellnessService(
        get_storage(),
        user_id,
        lookback_days=days or settings.analytics_lookback_days,
        persist=settings.persist_insights,
    )
    analysis = await service.analyze()
    logger.info("wellness_served", burnout_risk=analysis["metrics"]["burnout_risk"])
    return {"success": True, "data": analysis}
