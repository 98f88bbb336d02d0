"""OAuth token endpoint client for Google, Notion and Slack."""

import logging
from typing import Optional

import httpx

from ..config.settings import Settings
from ..models import GOOGLE_PROVIDERS, Provider, TokenGrant


logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
NOTION_TOKEN_URL = "https://api.notion.com/v1/oauth/token"
SLACK_TOKEN_URL = "https://slack.com/api/oauth.v2.access"


class OAuthTokenClient:
    """
    Exchanges authorization codes and refresh tokens for access tokens.

    Google refresh responses usually omit the refresh token; callers keep
    the one they already have. Notion and Slack user tokens are never
    refreshed here; once rejected they need reauthorization.
    """

    def __init__(self, http: httpx.AsyncClient, settings: Settings):
        self.http = http
        self.settings = settings

    def can_refresh(self, provider: Provider) -> bool:
        return provider in GOOGLE_PROVIDERS and bool(
            self.settings.google_client_id and self.settings.google_client_secret
        )

    async def exchange(self, provider: Provider, code: str, redirect_uri: str) -> TokenGrant:
        """Trade an authorization code for tokens. Raises httpx.HTTPStatusError on rejection."""
        provider = Provider(provider)
        if provider in GOOGLE_PROVIDERS:
            response = await self.http.post(
                GOOGLE_TOKEN_URL,
                data={
                    "client_id": self.settings.google_client_id or "",
                    "client_secret": self.settings.google_client_secret or "",
                    "code": code,
                    "grant_type": "authorization_code",
                    "redirect_uri": redirect_uri,
                },
            )
        elif provider == Provider.NOTION:
            response = await self.http.post(
                NOTION_TOKEN_URL,
                auth=(self.settings.notion_client_id or "", self.settings.notion_client_secret or ""),
                json={
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": redirect_uri,
                },
            )
        elif provider == Provider.SLACK:
            response = await self.http.post(
                SLACK_TOKEN_URL,
                data={
                    "client_id": self.settings.slack_client_id or "",
                    "client_secret": self.settings.slack_client_secret or "",
                    "code": code,
                    "redirect_uri": redirect_uri,
                },
            )
            response.raise_for_status()
            return self._parse_slack_grant(response)
        else:
            raise ValueError(f"Provider does not use OAuth: {provider.value}")

        response.raise_for_status()
        return self._parse_grant(response.json())

    async def refresh(self, provider: Provider, refresh_token: str) -> Optional[TokenGrant]:
        """
        Refresh an access token.

        Returns None when the provider cannot refresh or the exchange fails.
        """
        provider = Provider(provider)
        if not self.can_refresh(provider):
            logger.info(f"Token refresh not available for {provider.value}")
            return None

        try:
            response = await self.http.post(
                GOOGLE_TOKEN_URL,
                data={
                    "client_id": self.settings.google_client_id,
                    "client_secret": self.settings.google_client_secret,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                },
            )
        except httpx.HTTPError as e:
            logger.error(f"Token refresh request failed for {provider.value}: {e}")
            return None

        if response.status_code != 200:
            logger.error(f"Token refresh rejected for {provider.value}: HTTP {response.status_code}")
            return None

        grant = self._parse_grant(response.json())
        logger.info(f"Refreshed {provider.value} token (expires in {grant.expires_in}s)")
        return grant

    @classmethod
    def _parse_slack_grant(cls, response: httpx.Response) -> TokenGrant:
        """Slack reports failures as ok=false; briefings read as the user, so keep the user token."""
        data = response.json()
        if not data.get("ok"):
            raise httpx.HTTPStatusError(
                f"Slack rejected the authorization code: {data.get('error', 'unknown_error')}",
                request=response.request,
                response=response,
            )
        user = data.get("authed_user") or {}
        return cls._parse_grant(user if user.get("access_token") else data)

    @staticmethod
    def _parse_grant(data: dict) -> TokenGrant:
        scope = data.get("scope") or ""
        return TokenGrant(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_in=data.get("expires_in"),
            scopes=scope.split() if isinstance(scope, str) else list(scope),
        )
