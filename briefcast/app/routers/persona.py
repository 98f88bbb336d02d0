"""Interest profile preload and invalidation."""

import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException

from ..auth import AuthUser, get_current_user
from ..dependencies import get_services
from ..services import Services
from ...errors import AuthRequiredError, UpstreamUnavailable
from ...models import AuthRequired, InterestProfile, Provider


logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/persona/interests", response_model=InterestProfile)
async def get_interests(
    user: AuthUser = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """
    Cached profile, or one synthesized now from the user's recent videos.
    A profile that could not be generated comes back with status failed.
    """
    cached = services.interest_cache.get(user.id)
    if cached is not None:
        return cached
    if services.interests is None:
        raise HTTPException(status_code=503, detail="Interest synthesis is not configured")

    credential = await services.registry.get_valid_credential(user.id, Provider.YOUTUBE)
    if isinstance(credential, AuthRequired):
        raise HTTPException(status_code=409, detail={"message": "Connect YouTube first", "reauthorize": ["youtube"]})

    try:
        videos, _ = await services.youtube.list_recent_videos(credential)
    except AuthRequiredError:
        raise HTTPException(status_code=409, detail={"message": "Reconnect YouTube", "reauthorize": ["youtube"]})
    except (UpstreamUnavailable, httpx.HTTPError) as e:
        logger.warning(f"YouTube history unavailable for {user.id}: {e}")
        raise HTTPException(status_code=503, detail=UpstreamUnavailable.user_message)

    signals = [snippet.get("title", "") for snippet in videos.values()]
    profile = await services.interests.get_or_synthesize(user.id, signals)
    if profile.status.value != "generated":
        logger.warning(f"Interest preload for {user.id} returned {profile.status.value}")
    return profile


@router.delete("/persona/interests")
async def invalidate_interests(
    user: AuthUser = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    removed = services.interest_cache.invalidate(user.id)
    return {"invalidated": removed}
