"""
Authentication dependency.

Sign-up, login and sessions belong to Supabase Auth; this module only
resolves a bearer token to a user for the briefing routes.
"""

import asyncio
import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel


logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


class AuthUser(BaseModel):
    id: str
    email: Optional[str] = None


class SupabaseAuthenticator:
    """Validates access tokens with the injected Supabase client."""

    def __init__(self, client):
        self.client = client

    async def get_user(self, access_token: str) -> Optional[AuthUser]:
        try:
            response = await asyncio.to_thread(self.client.auth.get_user, access_token)
        except Exception as e:
            logger.warning(f"Token validation failed: {e}")
            return None

        if response is None or response.user is None:
            return None
        return AuthUser(id=response.user.id, email=response.user.email)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AuthUser:
    """
    FastAPI dependency that requires authentication.
    Raises 401 if the token is missing or invalid.
    """
    if not credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")

    authenticator = request.app.state.services.authenticator
    if authenticator is None:
        raise HTTPException(status_code=401, detail="Authentication is not configured")

    user = await authenticator.get_user(credentials.credentials)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return user
