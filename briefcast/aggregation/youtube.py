"""YouTube fetcher: recent playlist videos turned into transcript items."""

from typing import Optional
import logging

from .base import BaseFetcher, FetchContext
from .transcripts import TranscriptExtractor
from ..errors import AuthRequiredError
from ..models import Credential, FetchStatus, Provider, SourceFetchResult


logger = logging.getLogger(__name__)

YOUTUBE_API = "https://www.googleapis.com/youtube/v3"
LIKED_VIDEOS_PLAYLIST = "LL"


class YouTubeFetcher(BaseFetcher):
    """
    Lists the newest videos of the user's selected playlists (liked
    videos by default), then runs transcript extraction on them.
    Video titles are returned as interest signals either way.
    """

    provider = Provider.YOUTUBE

    def __init__(self, http, transcripts: TranscriptExtractor, max_videos: int = 5):
        super().__init__(http)
        self.transcripts = transcripts
        self.max_videos = max_videos

    async def fetch(self, credential: Optional[Credential], context: FetchContext) -> SourceFetchResult:
        videos, errors = await self.list_recent_videos(credential, context.playlist_ids)
        signals = [snippet["title"] for snippet in videos.values() if snippet.get("title")]
        if not videos:
            result = self.build_result([], errors)
            result.signals = signals
            return result

        titles = {video_id: snippet.get("title", video_id) for video_id, snippet in videos.items()}
        extracted = await self.transcripts.extract_transcripts(list(videos), titles)
        items = TranscriptExtractor.filter_empty(extracted)

        for item in items:
            snippet = videos.get(item.source_id, {})
            item.metadata["channel"] = snippet.get("videoOwnerChannelTitle") or snippet.get("channelTitle")

        if not items:
            return SourceFetchResult(
                provider=self.provider,
                status=FetchStatus.UNAVAILABLE,
                error="no transcripts available",
                signals=signals,
            )

        result = self.build_result(items, errors)
        if len(items) < len(videos) and result.status == FetchStatus.OK:
            result.status = FetchStatus.PARTIAL
            result.error = f"{len(videos) - len(items)} video(s) without transcript"
        result.signals = signals
        return result

    async def list_recent_videos(
        self, credential: Credential, playlist_ids: Optional[list[str]] = None
    ) -> tuple[dict[str, dict], list[str]]:
        """
        Newest videos across playlists, de-duplicated, capped at max_videos.

        Returns (video_id -> snippet, per-playlist errors).
        """
        videos: dict[str, dict] = {}
        errors = []
        for playlist_id in playlist_ids or [LIKED_VIDEOS_PLAYLIST]:
            try:
                data = await self.get_json(
                    f"{YOUTUBE_API}/playlistItems",
                    credential,
                    params={"part": "snippet", "playlistId": playlist_id, "maxResults": self.max_videos},
                )
            except AuthRequiredError:
                raise
            except Exception as e:
                logger.warning(f"Playlist {playlist_id} failed: {e}")
                errors.append(f"playlist {playlist_id}: {e}")
                continue

            for entry in data.get("items", []):
                snippet = entry.get("snippet", {})
                video_id = snippet.get("resourceId", {}).get("videoId")
                if video_id and video_id not in videos:
                    videos[video_id] = snippet

        selected = dict(list(videos.items())[:self.max_videos])
        logger.info(f"YouTube: {len(selected)} recent videos")
        return selected, errors
