"""
Productivity router: hourly and weekday completion patterns.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from taskquest.auth.dependencies import get_current_user_id
from taskquest.config import get_settings
from taskquest.services.productivity import ProductivityPatternService
from taskquest.storage import get_storage
from taskquest.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("/patterns")
async def get_productivity_patterns(
    user_id: str = Depends(get_current_user_id),
    days: Optional[int] = Query(None, ge=7, le=365),
):
    service = ProductivityPatternService(
        get_storage(),
        user_id,
        lookback_days=days or get_settings().analytics_lookback_days,
    )
    analysis = service.analyze()
    logger.info("productivity_patterns_served", patterns=len(analysis["patterns"]))
    return {"success": True, "data": analysis}
