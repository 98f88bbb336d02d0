"""
Service container.

Every shared client (HTTP, database, Supabase, Gemini) is created here
once per process and handed to the components that need it.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx
from sqlalchemy.engine import Engine

from ..aggregation import (
    CalendarFetcher,
    ContentAggregator,
    GmailFetcher,
    NotionFetcher,
    SlackFetcher,
    TranscriptExtractor,
    TrendFetcher,
    YouTubeFetcher,
)
from ..audio import AudioSynthesizer, GeminiSpeechSynthesizer, SupabaseObjectStorage
from ..config.settings import Settings
from ..connectors import ConnectorRegistry, CredentialStore, OAuthTokenClient
from ..models import Provider
from ..persistence import BriefingRepository, create_session_factory, init_db
from ..pipeline import BriefingPipeline
from ..synthesis import GeminiClientPool, GeminiTextClient, InterestCache, InterestSynthesizer, ScriptSynthesizer
from ..utils.pacing import Pacer
from .auth import SupabaseAuthenticator


logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    http: httpx.AsyncClient
    engine: Engine
    repository: BriefingRepository
    registry: ConnectorRegistry
    token_client: OAuthTokenClient
    interest_cache: InterestCache
    youtube: YouTubeFetcher
    authenticator: Optional[SupabaseAuthenticator] = None
    interests: Optional[InterestSynthesizer] = None
    pipeline: Optional[BriefingPipeline] = None

    async def aclose(self):
        await self.http.aclose()
        self.engine.dispose()
        logger.info("Services closed")


def create_supabase_client(settings: Settings) -> Optional[Any]:
    if not (settings.supabase_url and settings.supabase_service_key):
        logger.warning("⚠️  Supabase not configured: audio upload and sign-in disabled")
        return None
    from supabase import create_client
    return create_client(settings.supabase_url, settings.supabase_service_key)


def build_services(
    settings: Settings,
    supabase_client: Optional[Any] = None,
    http: Optional[httpx.AsyncClient] = None,
    gemini_pool: Optional[GeminiClientPool] = None,
) -> Services:
    """Wire every component from settings and the shared clients."""
    http = http or httpx.AsyncClient(timeout=httpx.Timeout(30.0, connect=10.0))
    engine = init_db(settings.database_url)
    session_factory = create_session_factory(engine)

    repository = BriefingRepository(session_factory, timezone=settings.timezone)
    token_client = OAuthTokenClient(http, settings)
    registry = ConnectorRegistry(
        CredentialStore(session_factory),
        token_client,
        expiry_skew_seconds=settings.token_expiry_skew_seconds,
    )

    transcripts = TranscriptExtractor(
        http,
        languages=[settings.language, "en"],
        pacer=Pacer(delay_seconds=settings.transcript_pause_seconds, max_concurrency=1),
    )
    youtube = YouTubeFetcher(http, transcripts, max_videos=settings.max_videos)
    interest_cache = InterestCache()

    services = Services(
        settings=settings,
        http=http,
        engine=engine,
        repository=repository,
        registry=registry,
        token_client=token_client,
        interest_cache=interest_cache,
        youtube=youtube,
        authenticator=SupabaseAuthenticator(supabase_client) if supabase_client is not None else None,
    )

    if gemini_pool is None:
        if not settings.gemini_api_keys:
            logger.warning("⚠️  GEMINI_API_KEY not set: briefing generation disabled")
            return services
        gemini_pool = GeminiClientPool(settings.gemini_api_keys)

    llm = GeminiTextClient(gemini_pool, model=settings.gemini_text_model, timeout=settings.llm_timeout_seconds)
    interests = InterestSynthesizer(llm, interest_cache, language=settings.language)

    fetchers = {
        Provider.GMAIL: GmailFetcher(http),
        Provider.CALENDAR: CalendarFetcher(http),
        Provider.NOTION: NotionFetcher(http),
        Provider.SLACK: SlackFetcher(http),
        Provider.YOUTUBE: youtube,
        Provider.TRENDS: TrendFetcher(http, llm, topic_limit=settings.trend_topic_limit),
    }
    aggregator = ContentAggregator(
        registry,
        fetchers,
        timeout_seconds=settings.source_fetch_timeout_seconds,
        max_concurrency=settings.fetch_concurrency,
        timeouts={
            Provider.YOUTUBE: settings.video_fetch_timeout_seconds,
            Provider.TRENDS: settings.llm_timeout_seconds,
        },
    )

    speech = GeminiSpeechSynthesizer(
        gemini_pool,
        model=settings.gemini_tts_model,
        host_speaker=settings.host_speaker,
        guest_speaker=settings.guest_speaker,
        host_voice=settings.host_voice,
        guest_voice=settings.guest_voice,
        timeout=settings.tts_timeout_seconds,
    )
    storage = SupabaseObjectStorage(
        supabase_client,
        bucket=settings.storage_bucket,
        max_attempts=settings.upload_max_attempts,
    )

    services.interests = interests
    services.pipeline = BriefingPipeline(
        aggregator=aggregator,
        interests=interests,
        scripts=ScriptSynthesizer(
            llm,
            host_speaker=settings.host_speaker,
            guest_speaker=settings.guest_speaker,
            language=settings.language,
        ),
        audio=AudioSynthesizer(speech, storage),
        repository=repository,
        settings=settings,
    )
    return services
