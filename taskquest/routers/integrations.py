"""
Integrations router: OAuth connection and sync for third-party providers.
"""

import secrets
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from taskquest.auth.dependencies import get_current_user_id
from taskquest.models.enums import OAuthProvider
from taskquest.models.integrations import OAuthExchangeRequest
from taskquest.services.integrations import IntegrationNotFoundError, IntegrationService
from taskquest.storage import get_storage
from taskquest.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("")
async def list_integrations(user_id: str = Depends(get_current_user_id)):
    integrations = IntegrationService(get_storage(), user_id).list_integrations()
    return {"success": True, "data": {"integrations": integrations, "count": len(integrations)}}


@router.get("/{provider}/authorize")
async def authorize(
    provider: OAuthProvider,
    user_id: str = Depends(get_current_user_id),
    redirect_uri: Optional[str] = Query(None),
):
    """Consent URL for ``provider`` plus the state to verify on callback."""
    state = secrets.token_urlsafe(32)
    url = IntegrationService(get_storage(), user_id).authorize_url(provider, state, redirect_uri)
    return {"success": True, "data": {"authorization_url": url, "state": state}}


@router.post("/connect")
async def connect(
    request: OAuthExchangeRequest,
    user_id: str = Depends(get_current_user_id),
):
    integration = await IntegrationService(get_storage(), user_id).connect(
        request.provider,
        request.code,
        request.redirect_uri,
    )
    return {"success": True, "data": integration}


@router.post("/{integration_id}/sync")
async def sync_integration(integration_id: str, user_id: str = Depends(get_current_user_id)):
    try:
        result = await IntegrationService(get_storage(), user_id).sync(integration_id)
    except IntegrationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    logger.info("integration_synced", integration_id=integration_id, success=result.success)
    return {"success": True, "data": result.model_dump(mode="json")}
