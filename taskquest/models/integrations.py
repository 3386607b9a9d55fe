"""
Models for third-party integrations: OAuth token exchange and task sync.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from taskquest.models.enums import OAuthProvider


class OAuthTokens(BaseModel):
    """Normalized result of an authorization-code exchange."""

    access_token: str = Field(description="Bearer token for the provider API")
    refresh_token: Optional[str] = Field(default=None, description="Refresh token, if issued")
    expires_in: Optional[int] = Field(default=None, description="Access token lifetime in seconds")
    scope: Optional[str] = Field(default=None, description="Granted scopes")
    token_type: str = Field(default="Bearer", description="Token type")


class OAuthExchangeRequest(BaseModel):
    """Payload posted by the integration callback page."""

    provider: OAuthProvider
    code: str = Field(min_length=1, description="Authorization code from the redirect")
    redirect_uri: str = Field(description="Redirect URI used in the authorize step")


class SyncMapping(BaseModel):
    """
    Link between a locally created record and its external counterpart.

    Looked up on every sync so that an external item already imported is
    updated instead of created again.
    """

    id: Optional[str] = None
    integration_id: str
    local_table: str
    local_record_id: str
    external_id: str
    external_type: Optional[str] = None
    created_at: Optional[datetime] = None


class SyncResult(BaseModel):
    """Outcome of one integration sync run."""

    success: bool = False
    records_processed: int = 0
    tasks_created: int = 0
    tasks_updated: int = 0
    errors: list[str] = Field(default_factory=list)
    sync_mappings: list[SyncMapping] = Field(default_factory=list)
