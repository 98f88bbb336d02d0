"""
Connector Registry.

Hands out valid credentials per (user, provider), refreshing expired
access tokens on demand. Refresh-then-persist for one key is serialized
so concurrent callers never race each other's newer token.
"""

import asyncio
import logging
from typing import Union

from .oauth import OAuthTokenClient
from .store import CredentialStore
from ..models import AuthRequired, Credential, Provider, TokenGrant


logger = logging.getLogger(__name__)

CREDENTIAL_PROVIDERS = (Provider.GMAIL, Provider.CALENDAR, Provider.YOUTUBE, Provider.NOTION, Provider.SLACK)


class ConnectorRegistry:
    """
    Usage:
        registry = ConnectorRegistry(store, token_client)
        credential = await registry.get_valid_credential(user_id, Provider.GMAIL)
        if isinstance(credential, AuthRequired):
            ...  # skip the source
    """

    def __init__(
        self,
        store: CredentialStore,
        token_client: OAuthTokenClient,
        expiry_skew_seconds: int = 300,
    ):
        self.store = store
        self.token_client = token_client
        self.expiry_skew_seconds = expiry_skew_seconds
        self._locks: dict[tuple[str, Provider], asyncio.Lock] = {}

    def _lock_for(self, user_id: str, provider: Provider) -> asyncio.Lock:
        return self._locks.setdefault((user_id, provider), asyncio.Lock())

    async def get_valid_credential(
        self, user_id: str, provider: Provider
    ) -> Union[Credential, AuthRequired]:
        """
        Return a credential that is valid now, refreshing it if needed.

        Never raises for auth problems: a missing, unrefreshable or
        refresh-rejected credential comes back as AuthRequired.
        """
        provider = Provider(provider)
        if provider not in CREDENTIAL_PROVIDERS:
            raise ValueError(f"{provider.value} does not use credentials")

        credential = self.store.get(user_id, provider)
        if credential is None:
            return AuthRequired(provider=provider, reason="not connected")
        if not credential.is_expired(self.expiry_skew_seconds):
            return credential

        async with self._lock_for(user_id, provider):
            # Another caller may have refreshed while we waited
            credential = self.store.get(user_id, provider)
            if credential is None:
                return AuthRequired(provider=provider, reason="not connected")
            if not credential.is_expired(self.expiry_skew_seconds):
                return credential

            if not credential.refresh_token:
                logger.info(f"{provider.value} token expired for {user_id} with no refresh token")
                return AuthRequired(provider=provider, reason="token expired")

            grant = await self.token_client.refresh(provider, credential.refresh_token)
            if grant is None:
                self.store.disable(user_id, provider)
                return AuthRequired(provider=provider, reason="token refresh failed")

            refreshed = credential.model_copy(update={
                "access_token": grant.access_token,
                "refresh_token": grant.refresh_token or credential.refresh_token,
                "expires_at": grant.expires_at(),
                "scopes": grant.scopes or credential.scopes,
            })
            self.store.save(user_id, refreshed)
            logger.info(f"Refreshed and stored {provider.value} credential for {user_id}")
            return refreshed

    def needs_reauthorization(self, user_id: str, provider: Provider) -> bool:
        """True when only the user can fix the credential. Does not refresh."""
        provider = Provider(provider)
        credential = self.store.get(user_id, provider)
        if credential is None:
            return True
        if not credential.is_expired(self.expiry_skew_seconds):
            return False
        return not (credential.refresh_token and self.token_client.can_refresh(provider))

    def store_grant(self, user_id: str, provider: Provider, grant: TokenGrant) -> Credential:
        """Save tokens delivered by the OAuth callback, replacing any previous ones."""
        provider = Provider(provider)
        existing = self.store.get(user_id, provider)
        credential = Credential(
            provider=provider,
            access_token=grant.access_token,
            refresh_token=grant.refresh_token or (existing.refresh_token if existing else None),
            expires_at=grant.expires_at(),
            scopes=grant.scopes,
        )
        self.store.save(user_id, credential)
        logger.info(f"Stored {provider.value} credential for {user_id}")
        return credential

    def connection_status(self, user_id: str) -> dict[str, str]:
        """
        Per-provider status: connected, refreshable, reauthorize or disconnected.
        """
        status = {provider.value: "disconnected" for provider in CREDENTIAL_PROVIDERS}
        for credential, active in self.store.list_for_user(user_id):
            if not active:
                status[credential.provider.value] = "reauthorize"
            elif not credential.is_expired(self.expiry_skew_seconds):
                status[credential.provider.value] = "connected"
            elif credential.refresh_token and self.token_client.can_refresh(credential.provider):
                status[credential.provider.value] = "refreshable"
            else:
                status[credential.provider.value] = "reauthorize"
        return status
