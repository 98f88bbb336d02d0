"""Connected-service tokens and status."""

import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, model_validator

from ..auth import AuthUser, get_current_user
from ..dependencies import get_services
from ..services import Services
from ...connectors.registry import CREDENTIAL_PROVIDERS
from ...errors import PersistenceError
from ...models import Provider, TokenGrant


logger = logging.getLogger(__name__)

router = APIRouter()


class TokenRequest(BaseModel):
    """Either an authorization code to exchange, or tokens obtained by the client."""

    code: Optional[str] = None
    redirect_uri: Optional[str] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    scopes: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_one_source(self):
        if not self.code and not self.access_token:
            raise ValueError("Provide either code or access_token")
        if self.code and not self.redirect_uri:
            raise ValueError("redirect_uri is required with code")
        return self


@router.get("/connectors/status")
async def connector_status(
    user: AuthUser = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return services.registry.connection_status(user.id)


@router.post("/connectors/{provider}/token")
async def save_token(
    provider: Provider,
    request: TokenRequest,
    user: AuthUser = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    if provider not in CREDENTIAL_PROVIDERS:
        raise HTTPException(status_code=400, detail=f"{provider.value} does not use credentials")

    if request.code:
        try:
            grant = await services.token_client.exchange(provider, request.code, request.redirect_uri)
        except httpx.HTTPError as e:
            logger.error(f"Code exchange failed for {provider.value}: {e}")
            raise HTTPException(status_code=502, detail="Authorization code exchange failed")
    else:
        grant = TokenGrant(
            access_token=request.access_token,
            refresh_token=request.refresh_token,
            expires_in=request.expires_in,
            scopes=request.scopes,
        )

    try:
        credential = services.registry.store_grant(user.id, provider, grant)
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=e.user_message)

    return {
        "provider": provider.value,
        "connected": True,
        "expires_at": credential.expires_at.isoformat() if credential.expires_at else None,
    }
