"""
Briefing generation pipeline.

started -> aggregating -> synthesizing-interests (optional) ->
synthesizing-script -> synthesizing-audio -> persisting -> completed,
with error reachable from any stage before completion.
"""

import asyncio
import logging
from typing import Iterable, Optional

from .aggregation import ContentAggregator, FetchContext
from .audio import AudioSynthesizer
from .config.settings import Settings
from .errors import BriefcastError, NoContentError
from .models import (
    AggregatedContent,
    BriefingRecord,
    InterestProfile,
    InterestStatus,
    Provider,
    Stage,
)
from .persistence import BriefingRepository
from .streaming import EventSink, NullEventSink, ProgressTracker
from .synthesis import InterestSynthesizer, ScriptSynthesizer
from .utils.logger import bind_run_context


logger = logging.getLogger(__name__)

DEFAULT_PROVIDERS = [
    Provider.CALENDAR, Provider.GMAIL, Provider.SLACK, Provider.NOTION, Provider.YOUTUBE, Provider.TRENDS,
]

# user_id -> running generation task
_RUNNING_RUNS: dict[str, asyncio.Task] = {}


class BriefingPipeline:
    """One logical task per generation request."""

    def __init__(
        self,
        aggregator: ContentAggregator,
        interests: InterestSynthesizer,
        scripts: ScriptSynthesizer,
        audio: AudioSynthesizer,
        repository: BriefingRepository,
        settings: Settings,
    ):
        self.aggregator = aggregator
        self.interests = interests
        self.scripts = scripts
        self.audio = audio
        self.repository = repository
        self.settings = settings

    async def run(
        self,
        user_id: str,
        sink: Optional[EventSink] = None,
        trend_topics: Optional[list[str]] = None,
        providers: Optional[Iterable[Provider]] = None,
        playlist_ids: Optional[list[str]] = None,
    ) -> Optional[BriefingRecord]:
        """
        Run every stage, reporting progress to ``sink`` (unwatched when None).

        Returns the persisted record, or None after a fatal error (which has
        already been reported as the terminal ``error`` event).
        """
        tracker = ProgressTracker(sink or NullEventSink())
        aggregated: Optional[AggregatedContent] = None
        providers = [Provider(p) for p in (providers or DEFAULT_PROVIDERS)]
        date_key = self.repository.today_key()
        bind_run_context(user_id=user_id, date_key=date_key)

        try:
            await tracker.advance(Stage.STARTED, date_key=date_key)

            cached_profile = self.interests.cache.get(user_id)
            topics = trend_topics or self._topics_from(cached_profile)
            context = FetchContext(
                user_id=user_id,
                limit=self.settings.items_per_source,
                timezone=self.settings.timezone,
                language=self.settings.language,
                trend_topics=topics,
                playlist_ids=playlist_ids or [],
            )

            await tracker.advance(Stage.AGGREGATING, providers=[p.value for p in providers])
            aggregated = await self.aggregator.aggregate(user_id, providers, context)

            profile = cached_profile
            if profile is None:
                signals = aggregated.signals()
                if signals:
                    await tracker.advance(
                        Stage.SYNTHESIZING_INTERESTS,
                        sources=aggregated.summary(),
                        signals=len(signals),
                    )
                    profile = await self.interests.get_or_synthesize(user_id, signals)
                    if profile.status != InterestStatus.GENERATED:
                        logger.warning(f"Interest profile for {user_id} is {profile.status.value}")
                else:
                    profile = InterestProfile.empty(InterestStatus.EMPTY)

            await tracker.advance(
                Stage.SYNTHESIZING_SCRIPT,
                sources=aggregated.summary(),
                interests={"status": profile.status.value, "keywords": len(profile.keywords)},
            )
            script = await self.scripts.synthesize(aggregated, profile, topics, briefing_date=date_key)

            await tracker.advance(Stage.SYNTHESIZING_AUDIO, sections=script.labels)
            audio = await self.audio.synthesize(script, user_id, date_key)

            await tracker.advance(Stage.PERSISTING, duration_seconds=audio.duration_estimate_seconds)
            record = await asyncio.to_thread(
                self.repository.upsert_briefing,
                user_id,
                date_key,
                script,
                audio,
                aggregated.data_sources(),
            )

            await tracker.complete(
                briefing_id=record.id,
                date_key=record.date_key,
                audio_url=record.audio_url,
                duration_seconds=audio.duration_estimate_seconds,
                sections=record.section_data,
            )
            logger.info(f"✅ Briefing completed for {user_id} ({date_key})")
            return record

        except BriefcastError as e:
            logger.error(f"Briefing failed for {user_id}: {e}")
            payload = {"kind": type(e).__name__}
            message = e.user_message
            if aggregated is not None and aggregated.reauthorize:
                payload["reauthorize"] = [p.value for p in aggregated.reauthorize]
                if isinstance(e, NoContentError):
                    message = f"Please reconnect {', '.join(payload['reauthorize'])} to generate your briefing."
            await tracker.fail(message, **payload)
            return None
        except Exception:
            logger.exception(f"Unexpected error generating briefing for {user_id}")
            await tracker.fail(BriefcastError.user_message, kind="InternalError")
            return None

    def _topics_from(self, profile: Optional[InterestProfile]) -> list[str]:
        if profile is None:
            return []
        return profile.keywords[:self.settings.trend_topic_limit]


def start_background_run(pipeline: BriefingPipeline, user_id: str, sink: EventSink, **kwargs) -> asyncio.Task:
    """
    Run the pipeline as a task that outlives the request that started it.
    Raises RuntimeError if the user already has a run in progress.
    """
    existing = _RUNNING_RUNS.get(user_id)
    if existing is not None and not existing.done():
        raise RuntimeError(f"A briefing is already being generated for {user_id}")

    task = asyncio.create_task(pipeline.run(user_id, sink, **kwargs), name=f"briefing-{user_id}")
    _RUNNING_RUNS[user_id] = task

    def _cleanup(finished: asyncio.Task):
        if _RUNNING_RUNS.get(user_id) is finished:
            del _RUNNING_RUNS[user_id]

    task.add_done_callback(_cleanup)
    return task


def is_running(user_id: str) -> bool:
    task = _RUNNING_RUNS.get(user_id)
    return task is not None and not task.done()
