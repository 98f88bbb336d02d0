"""Briefing generation, status and manual edits."""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from ..auth import AuthUser, get_current_user
from ..dependencies import get_services
from ..rate_limiter import generation_rate_limit
from ..services import Services
from ...errors import PersistenceError
from ...models import BriefingRecord, Provider
from ...pipeline import start_background_run
from ...streaming import QueueEventSink, format_sse


logger = logging.getLogger(__name__)

router = APIRouter()


class GenerateRequest(BaseModel):
    trend_topics: Optional[list[str]] = None
    providers: Optional[list[Provider]] = None
    playlist_ids: Optional[list[str]] = None


class SectionEdit(BaseModel):
    label: str
    text: str


class SaveRequest(BaseModel):
    script: Optional[str] = None
    sections: Optional[list[SectionEdit]] = Field(default=None, description="Replaces every section")


@router.post("/briefing/generate-stream", dependencies=[Depends(generation_rate_limit)])
async def generate_stream(
    request: GenerateRequest,
    user: AuthUser = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """
    Start a generation run and stream its progress as server-sent events.
    The run keeps going if the client disconnects.
    """
    if services.pipeline is None:
        raise HTTPException(status_code=503, detail="Briefing generation is not configured")

    sink = QueueEventSink()
    try:
        start_background_run(
            services.pipeline,
            user.id,
            sink,
            trend_topics=request.trend_topics,
            providers=request.providers,
            playlist_ids=request.playlist_ids,
        )
    except RuntimeError as e:
        raise HTTPException(status_code=409, detail=str(e))

    async def stream():
        try:
            async for event in sink.events():
                yield format_sse(event)
        except asyncio.CancelledError:
            logger.info(f"Client disconnected from briefing stream for {user.id}")
            raise
        finally:
            sink.detach()

    return StreamingResponse(
        stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get("/briefing/latest", response_model=Optional[BriefingRecord])
async def latest_briefing(
    user: AuthUser = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Today's briefing, or null if none exists yet."""
    try:
        return await asyncio.to_thread(services.repository.get_latest, user.id)
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=e.user_message)


@router.post("/briefing/save", response_model=BriefingRecord)
async def save_briefing(
    request: SaveRequest,
    user: AuthUser = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Upsert a manual script/section edit for today without regenerating."""
    sections = [s.model_dump() for s in request.sections] if request.sections is not None else None
    try:
        return await asyncio.to_thread(
            services.repository.save_edit,
            user.id,
            services.repository.today_key(),
            request.script,
            sections,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=e.user_message)
