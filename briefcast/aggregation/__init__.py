"""Source fetchers and the content aggregator."""

from .base import BaseFetcher, FetchContext
from .gmail import GmailFetcher
from .google_calendar import CalendarFetcher
from .notion import NotionFetcher
from .slack import SlackFetcher
from .youtube import YouTubeFetcher
from .trends import TrendFetcher
from .transcripts import TranscriptExtractor
from .source_manager import ContentAggregator

__all__ = [
    "BaseFetcher",
    "FetchContext",
    "GmailFetcher",
    "CalendarFetcher",
    "NotionFetcher",
    "SlackFetcher",
    "YouTubeFetcher",
    "TrendFetcher",
    "TranscriptExtractor",
    "ContentAggregator",
]
