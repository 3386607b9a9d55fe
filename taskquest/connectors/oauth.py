"""
OAuth2 authorization-code flow for the supported providers.

Builds the consent URL and exchanges the returned code for tokens. Every
exchange opens its own ``httpx.AsyncClient`` inside ``async with`` so the
connection is closed whatever the outcome.
"""

import base64
from typing import Any, Optional
from urllib.parse import urlencode

import httpx
import structlog

from taskquest.config import Settings, get_settings
from taskquest.models.enums import OAuthProvider
from taskquest.models.integrations import OAuthTokens

logger = structlog.get_logger()


class OAuthExchangeError(Exception):
    """Raised when an authorization code cannot be exchanged for tokens."""

    pass


AUTHORIZE_URLS = {
    OAuthProvider.GOOGLE: "https://accounts.google.com/o/oauth2/v2/auth",
    OAuthProvider.OUTLOOK: "https://login.microsoftonline.com/common/oauth2/v2.0/authorize",
    OAuthProvider.SLACK: "https://slack.com/oauth/v2/authorize",
    OAuthProvider.NOTION: "https://api.notion.com/v1/oauth/authorize",
    OAuthProvider.GITHUB: "https://github.com/login/oauth/authorize",
}

TOKEN_URLS = {
    OAuthProvider.GOOGLE: "https://oauth2.googleapis.com/token",
    OAuthProvider.OUTLOOK: "https://login.microsoftonline.com/common/oauth2/v2.0/token",
    OAuthProvider.SLACK: "https://slack.com/api/oauth.v2.access",
    OAuthProvider.NOTION: "https://api.notion.com/v1/oauth/token",
    OAuthProvider.GITHUB: "https://github.com/login/oauth/access_token",
}

DEFAULT_SCOPES = {
    OAuthProvider.GOOGLE: ["https://www.googleapis.com/auth/calendar.readonly"],
    OAuthProvider.OUTLOOK: ["offline_access", "Calendars.Read"],
    OAuthProvider.SLACK: ["channels:read", "chat:write"],
    OAuthProvider.NOTION: [],
    OAuthProvider.GITHUB: ["repo"],
}


class OAuthClient:
    """
    Authorization-code client for Google, Outlook, Slack, Notion and GitHub.

    Attributes:
        settings: Source of client credentials and the HTTP timeout
        transport: Optional httpx transport (tests pass a MockTransport)
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self.transport = transport

    def _credentials(self, provider: OAuthProvider) -> tuple[str, str]:
        client_id, client_secret = self.settings.oauth_credentials(provider.value)
        if not client_id or not client_secret:
            raise OAuthExchangeError(f"OAuth credentials not configured for {provider.value}")
        return client_id, client_secret

    def default_redirect_uri(self, provider: OAuthProvider) -> str:
        return f"{self.settings.oauth_redirect_base.rstrip('/')}/{provider.value}/callback"

    def build_authorize_url(
        self,
        provider: OAuthProvider,
        state: str,
        redirect_uri: Optional[str] = None,
        scopes: Optional[list[str]] = None,
    ) -> str:
        """Consent URL the user is redirected to; ``state`` is echoed back on the callback."""
        provider = OAuthProvider(provider)
        client_id, _ = self._credentials(provider)
        params: dict[str, str] = {
            "client_id": client_id,
            "response_type": "code",
            "redirect_uri": redirect_uri or self.default_redirect_uri(provider),
            "state": state,
        }
        scope_list = DEFAULT_SCOPES[provider] if scopes is None else scopes
        if scope_list:
            separator = "," if provider == OAuthProvider.SLACK else " "
            params["scope"] = separator.join(scope_list)
        if provider == OAuthProvider.GOOGLE:
            params["access_type"] = "offline"
            params["prompt"] = "consent"
        if provider == OAuthProvider.NOTION:
            params["owner"] = "user"

        logger.info("oauth_authorize_url_built", provider=provider.value)
        return f"{AUTHORIZE_URLS[provider]}?{urlencode(params)}"

    async def exchange_code(
        self,
        provider: OAuthProvider,
        code: str,
        redirect_uri: str,
    ) -> OAuthTokens:
        """
        Exchange an authorization code for tokens.

        Raises:
            OAuthExchangeError: On missing credentials, transport failure,
                a non-2xx response or a payload without an access token
        """
        provider = OAuthProvider(provider)
        client_id, client_secret = self._credentials(provider)
        token_url = TOKEN_URLS[provider]

        request: dict[str, Any] = {"headers": {"Accept": "application/json"}}
        if provider == OAuthProvider.NOTION:
            basic = base64.b64encode(f"{client_id}:{client_secret}".encode()).decode()
            request["headers"]["Authorization"] = f"Basic {basic}"
            request["json"] = {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
            }
        else:
            request["data"] = {
                "grant_type": "authorization_code",
                "client_id": client_id,
                "client_secret": client_secret,
                "code": code,
                "redirect_uri": redirect_uri,
            }

        try:
            async with httpx.AsyncClient(
                timeout=self.settings.http_timeout_seconds,
                transport=self.transport,
            ) as client:
                response = await client.post(token_url, **request)
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "oauth_code_exchange_failed",
                provider=provider.value,
                status_code=e.response.status_code,
                error=e.response.text,
            )
            raise OAuthExchangeError(f"Token exchange failed: {e.response.text}")
        except (httpx.HTTPError, ValueError) as e:
            logger.error("oauth_code_exchange_error", provider=provider.value, error=str(e))
            raise OAuthExchangeError(f"Token exchange failed: {e}")

        tokens = self._parse_tokens(provider, payload)
        logger.info(
            "oauth_code_exchanged",
            provider=provider.value,
            expires_in=tokens.expires_in,
            has_refresh_token=tokens.refresh_token is not None,
        )
        return tokens

    @staticmethod
    def _parse_tokens(provider: OAuthProvider, payload: dict[str, Any]) -> OAuthTokens:
        if provider == OAuthProvider.SLACK:
            if not payload.get("ok", False):
                raise OAuthExchangeError(f"Token exchange failed: {payload.get('error', 'unknown_error')}")
            user = payload.get("authed_user") or {}
            payload = {
                "access_token": payload.get("access_token") or user.get("access_token"),
                "refresh_token": payload.get("refresh_token") or user.get("refresh_token"),
                "expires_in": payload.get("expires_in") or user.get("expires_in"),
                "scope": payload.get("scope") or user.get("scope"),
                "token_type": payload.get("token_type") or user.get("token_type"),
            }
        elif "error" in payload and not payload.get("access_token"):
            # GitHub reports failures with a 200 status
            raise OAuthExchangeError(
                f"Token exchange failed: {payload.get('error_description') or payload['error']}"
            )

        access_token = payload.get("access_token")
        if not access_token:
            raise OAuthExchangeError("Token exchange failed: no access token in response")

        return OAuthTokens(
            access_token=access_token,
            refresh_token=payload.get("refresh_token"),
            expires_in=payload.get("expires_in"),
            scope=payload.get("scope"),
            token_type=payload.get("token_type") or "Bearer",
        )
