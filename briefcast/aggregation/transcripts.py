"""
Transcript extraction for video sources.

Videos are processed one at a time with a pause after each, which keeps
the memory held by caption extraction bounded. Each id gets a primary
attempt (youtube-transcript-api) and a fallback attempt (subtitle tracks
discovered by yt-dlp). A video that fails both yields an empty item;
the batch itself never fails.
"""

import asyncio
import re
from typing import Awaitable, Callable, Optional, Sequence
import logging

import httpx
import yt_dlp
from youtube_transcript_api import YouTubeTranscriptApi, NoTranscriptFound, TranscriptsDisabled

from .subtitles import TranscriptSegment, central_excerpt, parse_subtitles
from ..models import ContentItem, Provider
from ..utils.pacing import Pacer


logger = logging.getLogger(__name__)

SegmentExtractor = Callable[[str], Awaitable[list[TranscriptSegment]]]

SUBTITLE_FORMATS = ("vtt", "srt")


class TranscriptExtractor:
    """
    Usage:
        extractor = TranscriptExtractor(http, languages=["ko", "en"])
        items = await extractor.extract_transcripts(["dQw4w9WgXcQ", "..."])
        usable = extractor.filter_empty(items)
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        languages: Sequence[str] = ("en",),
        pacer: Optional[Pacer] = None,
        primary: Optional[SegmentExtractor] = None,
        fallback: Optional[SegmentExtractor] = None,
        excerpt_segments: int = 30,
    ):
        self.http = http
        self.languages = list(dict.fromkeys(languages))
        self.pacer = pacer or Pacer(delay_seconds=2.0, max_concurrency=1)
        self.primary = primary or self.fetch_with_transcript_api
        self.fallback = fallback or self.fetch_with_subtitle_tracks
        self.excerpt_segments = excerpt_segments

    async def extract_transcripts(
        self,
        video_ids: Sequence[str],
        titles: Optional[dict[str, str]] = None,
    ) -> list[ContentItem]:
        """
        Returns exactly one item per input id, in input order.
        Failed ids map to items with an empty body.
        """
        titles = titles or {}
        ids = [extract_video_id(v) for v in video_ids]
        logger.info(f"Extracting transcripts for {len(ids)} videos")

        items = await self.pacer.map(lambda video_id: self._extract_one(video_id, titles.get(video_id)), ids)

        extracted = sum(1 for item in items if not item.is_empty)
        logger.info(f"Transcripts: {extracted}/{len(ids)} extracted")
        return items

    @staticmethod
    def filter_empty(items: list[ContentItem]) -> list[ContentItem]:
        return [item for item in items if not item.is_empty]

    async def _extract_one(self, video_id: str, title: Optional[str]) -> ContentItem:
        for name, extractor in (("primary", self.primary), ("fallback", self.fallback)):
            try:
                segments = await extractor(video_id)
            except Exception as e:
                logger.warning(f"{name} transcript extraction failed for {video_id}: {e}")
                continue
            if segments:
                return self._to_item(video_id, title, segments, name)
            logger.debug(f"{name} extractor found no transcript for {video_id}")

        return ContentItem(
            source_id=video_id,
            provider=Provider.YOUTUBE,
            title=title or video_id,
            url=video_url(video_id),
            metadata={"extractor": None},
        )

    def _to_item(
        self, video_id: str, title: Optional[str], segments: list[TranscriptSegment], extractor: str
    ) -> ContentItem:
        return ContentItem(
            source_id=video_id,
            provider=Provider.YOUTUBE,
            title=title or video_id,
            body=" ".join(segment.text for segment in segments),
            url=video_url(video_id),
            segment_offsets=[segment.start for segment in segments],
            metadata={
                "extractor": extractor,
                "segment_count": len(segments),
                "duration": segments[-1].start + segments[-1].duration,
                "excerpt": central_excerpt(segments, self.excerpt_segments),
            },
        )

    async def fetch_with_transcript_api(self, video_id: str) -> list[TranscriptSegment]:
        """Manual transcript first, then auto-generated, in preferred languages."""
        def fetch() -> list[TranscriptSegment]:
            transcript_list = YouTubeTranscriptApi().list(video_id)
            try:
                transcript = transcript_list.find_manually_created_transcript(self.languages)
            except NoTranscriptFound:
                try:
                    transcript = transcript_list.find_generated_transcript(self.languages)
                except NoTranscriptFound:
                    return []
            return [
                TranscriptSegment(text=entry["text"], start=entry["start"], duration=entry.get("duration", 0.0))
                for entry in transcript.fetch().to_raw_data()
                if entry["text"].strip()
            ]

        try:
            return await asyncio.to_thread(fetch)
        except TranscriptsDisabled:
            logger.debug(f"Transcripts disabled for {video_id}")
            return []

    async def fetch_with_subtitle_tracks(self, video_id: str) -> list[TranscriptSegment]:
        """Find a subtitle track URL with yt-dlp (no download) and parse it."""
        def read_metadata() -> dict:
            options = {"quiet": True, "no_warnings": True, "noprogress": True, "skip_download": True}
            with yt_dlp.YoutubeDL(options) as ydl:
                return ydl.extract_info(video_url(video_id), download=False) or {}

        info = await asyncio.to_thread(read_metadata)
        track_url = self._pick_track(info)
        if not track_url:
            return []

        response = await self.http.get(track_url)
        response.raise_for_status()
        return parse_subtitles(response.text)

    def _pick_track(self, info: dict) -> Optional[str]:
        for source in ("subtitles", "automatic_captions"):
            tracks = info.get(source) or {}
            for language in self.languages:
                candidates = tracks.get(language) or next(
                    (v for k, v in tracks.items() if k.startswith(f"{language}-")), []
                )
                for fmt in SUBTITLE_FORMATS:
                    for track in candidates:
                        if track.get("ext") == fmt and track.get("url"):
                            return track["url"]
        return None


def video_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


def extract_video_id(url_or_id: str) -> str:
    """Extract video ID from URL or return as-is if already an ID."""
    patterns = [
        r"(?:youtube\.com\/watch\?v=)([a-zA-Z0-9_-]{11})",
        r"(?:youtu\.be\/)([a-zA-Z0-9_-]{11})",
        r"(?:youtube\.com\/embed\/)([a-zA-Z0-9_-]{11})",
        r"(?:youtube\.com\/shorts\/)([a-zA-Z0-9_-]{11})",
    ]

    for pattern in patterns:
        match = re.search(pattern, url_or_id)
        if match:
            return match.group(1)

    return url_or_id
