"""
AI router: task analysis, suggestion lifecycle and AI usage analytics.
"""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from taskquest.auth.dependencies import get_current_user_id
from taskquest.models.requests import (
    AnalyzeTaskRequest,
    GenerateSuggestionsRequest,
    RejectSuggestionRequest,
)
from taskquest.services.ai_suggestions import AISuggestionService
from taskquest.storage import RecordNotFoundError, get_storage
from taskquest.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


def _service(user_id: str) -> AISuggestionService:
    return AISuggestionService(get_storage(), user_id)


@router.post("/analyze-task")
async def analyze_task(
    request: AnalyzeTaskRequest,
    user_id: str = Depends(get_current_user_id),
):
    """Suggested priority, complexity and due date for a draft task."""
    analysis = _service(user_id).analyze_task(request.title, request.description)
    return {"success": True, "data": analysis}


@router.get("/preferences")
async def get_preferences(user_id: str = Depends(get_current_user_id)):
    return {"success": True, "data": _service(user_id).get_preferences()}


@router.put("/preferences")
async def update_preferences(
    changes: dict[str, Any] = Body(...),
    user_id: str = Depends(get_current_user_id),
):
    try:
        preferences = _service(user_id).update_preferences(changes)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"success": True, "data": preferences}


@router.post("/suggestions")
async def generate_suggestions(
    request: GenerateSuggestionsRequest,
    user_id: str = Depends(get_current_user_id),
):
    suggestions = _service(user_id).generate_suggestions(request.suggestion_type, request.limit)
    logger.info(
        "ai_suggestions_served",
        suggestion_type=request.suggestion_type.value,
        count=len(suggestions),
    )
    return {"success": True, "data": {"suggestions": suggestions, "count": len(suggestions)}}


@router.get("/suggestions")
async def list_pending_suggestions(user_id: str = Depends(get_current_user_id)):
    suggestions = _service(user_id).pending_suggestions()
    return {"success": True, "data": {"suggestions": suggestions, "count": len(suggestions)}}


@router.get("/suggestions/history")
async def list_suggestion_history(
    user_id: str = Depends(get_current_user_id),
    limit: int = Query(50, ge=1, le=500),
):
    suggestions = _service(user_id).suggestion_history(limit)
    return {"success": True, "data": {"suggestions": suggestions, "count": len(suggestions)}}


@router.post("/suggestions/{suggestion_id}/accept")
async def accept_suggestion(suggestion_id: str, user_id: str = Depends(get_current_user_id)):
    try:
        task_id = _service(user_id).accept_suggestion(suggestion_id)
    except RecordNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "data": {"suggestion_id": suggestion_id, "task_id": task_id}}


@router.post("/suggestions/{suggestion_id}/reject")
async def reject_suggestion(
    suggestion_id: str,
    request: Optional[RejectSuggestionRequest] = None,
    user_id: str = Depends(get_current_user_id),
):
    reason = request.reason if request else None
    rejected = _service(user_id).reject_suggestion(suggestion_id, reason)
    return {"success": True, "data": {"suggestion_id": suggestion_id, "rejected": rejected}}


@router.post("/suggestions/{suggestion_id}/dismiss")
async def dismiss_suggestion(suggestion_id: str, user_id: str = Depends(get_current_user_id)):
    if not _service(user_id).dismiss_suggestion(suggestion_id):
        raise HTTPException(status_code=404, detail=f"Suggestion {suggestion_id} not found")
    return {"success": True, "data": {"suggestion_id": suggestion_id, "dismissed": True}}


@router.get("/behavior")
async def analyze_behavior(user_id: str = Depends(get_current_user_id)):
    return {"success": True, "data": _service(user_id).analyze_behavior()}


@router.get("/stats")
async def get_stats(user_id: str = Depends(get_current_user_id)):
    return {"success": True, "data": _service(user_id).get_stats()}


@router.get("/insights")
async def get_suggestion_insights(user_id: str = Depends(get_current_user_id)):
    return {"success": True, "data": _service(user_id).get_suggestion_insights()}
