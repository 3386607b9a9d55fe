"""
Notifications router: preferences and delivery decisions.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import ValidationError

from taskquest.auth.dependencies import get_current_user_id
from taskquest.models.notifications import DeliveryContext
from taskquest.services.notifications import NotificationService
from taskquest.storage import get_storage
from taskquest.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("/preferences")
async def get_preferences(user_id: str = Depends(get_current_user_id)):
    preferences = NotificationService(get_storage(), user_id).get_preferences()
    return {"success": True, "data": preferences.model_dump()}


@router.put("/preferences")
async def update_preferences(
    changes: dict[str, Any] = Body(...),
    user_id: str = Depends(get_current_user_id),
):
    try:
        preferences = NotificationService(get_storage(), user_id).update_preferences(changes)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
    return {"success": True, "data": preferences.model_dump()}


@router.post("/should-send")
async def should_send_now(
    context: DeliveryContext,
    user_id: str = Depends(get_current_user_id),
):
    """Whether a notification should go out now given the user's context."""
    decision = NotificationService(get_storage(), user_id).should_send_now(context)
    return {"success": True, "data": decision}
