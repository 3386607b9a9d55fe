"""
Contacts router: relationship strength and network health.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from taskquest.auth.dependencies import get_current_user_id
from taskquest.services.contacts import ContactAnalyticsService
from taskquest.storage import get_storage
from taskquest.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("")
async def get_contact_analytics(
    user_id: str = Depends(get_current_user_id),
    category: Optional[str] = Query(None, description="Only list contacts in this category"),
    priority: Optional[str] = Query(None, description="Only list contacts with this priority"),
):
    analysis = ContactAnalyticsService(get_storage(), user_id).analyze(
        category=category,
        priority=priority,
    )
    logger.info("contact_analytics_served", contacts=len(analysis["contacts"]))
    return {"success": True, "data": analysis}
