"""
Content models for the briefing pipeline.
Provider-agnostic structures shared by the registry, fetchers and aggregator.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional
import hashlib

from pydantic import BaseModel, Field

from ..utils.clock import utcnow


class Provider(str, Enum):
    """External services a briefing can draw from."""

    GMAIL = "gmail"
    CALENDAR = "calendar"
    YOUTUBE = "youtube"
    NOTION = "notion"
    SLACK = "slack"
    TRENDS = "trends"


# Providers whose tokens are issued and refreshed by Google's OAuth server
GOOGLE_PROVIDERS = frozenset({Provider.GMAIL, Provider.CALENDAR, Provider.YOUTUBE})


class Credential(BaseModel):
    """Stored access credential for one (user, provider)."""

    provider: Provider
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None  # naive UTC
    scopes: list[str] = Field(default_factory=list)

    def is_expired(self, skew_seconds: int = 0, now: Optional[datetime] = None) -> bool:
        """A credential without an expiry never expires."""
        if self.expires_at is None:
            return False
        now = now or utcnow()
        return self.expires_at - timedelta(seconds=skew_seconds) <= now


class AuthRequired(BaseModel):
    """Returned instead of a credential when the user has to reconnect."""

    provider: Provider
    reason: str = "not connected"


class TokenGrant(BaseModel):
    """Tokens returned by a provider's OAuth token endpoint."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    scopes: list[str] = Field(default_factory=list)

    def expires_at(self, now: Optional[datetime] = None) -> Optional[datetime]:
        if self.expires_in is None:
            return None
        return (now or utcnow()) + timedelta(seconds=self.expires_in)


class FetchStatus(str, Enum):
    OK = "ok"
    PARTIAL = "partial"
    UNAVAILABLE = "unavailable"
    AUTH_REQUIRED = "authRequired"


class ContentItem(BaseModel):
    """
    Unified envelope for anything a source returns.
    Mail, events, pages, transcripts and news all normalize to this.
    """

    source_id: str = Field(..., description="Provider-side identifier")
    provider: Provider
    title: str
    body: str = ""
    timestamp: Optional[datetime] = None
    url: Optional[str] = None

    # Transcript-derived items only: start offset (seconds) of each segment
    segment_offsets: list[float] = Field(default_factory=list)

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.body.strip()

    @classmethod
    def generate_id(cls, provider: str, key: str) -> str:
        """Stable id for items whose provider has no natural one."""
        content = f"{provider}:{key}"
        return hashlib.md5(content.encode()).hexdigest()[:16]


class SourceFetchResult(BaseModel):
    """Outcome of one provider fetch within a single run."""

    provider: Provider
    items: list[ContentItem] = Field(default_factory=list)
    status: FetchStatus = FetchStatus.OK
    error: Optional[str] = None

    # Interest signals (e.g. watched video titles), kept even when no item is usable
    signals: list[str] = Field(default_factory=list)

    @property
    def has_content(self) -> bool:
        return bool(self.items) and self.status in (FetchStatus.OK, FetchStatus.PARTIAL)

    @classmethod
    def unavailable(cls, provider: Provider, error: str) -> "SourceFetchResult":
        return cls(provider=provider, status=FetchStatus.UNAVAILABLE, error=error)

    @classmethod
    def auth_required(cls, provider: Provider, error: str = "reauthorization required") -> "SourceFetchResult":
        return cls(provider=provider, status=FetchStatus.AUTH_REQUIRED, error=error)


class AggregatedContent(BaseModel):
    """Every provider's fetch result for one run, keyed by provider."""

    results: dict[Provider, SourceFetchResult] = Field(default_factory=dict)

    def items(self, provider: Optional[Provider] = None) -> list[ContentItem]:
        """Usable items, optionally for a single provider."""
        collected = []
        for key, result in self.results.items():
            if provider is not None and key != provider:
                continue
            if result.status in (FetchStatus.OK, FetchStatus.PARTIAL):
                collected.extend(result.items)
        return collected

    @property
    def total_items(self) -> int:
        return len(self.items())

    @property
    def is_empty(self) -> bool:
        return self.total_items == 0

    @property
    def succeeded(self) -> list[Provider]:
        return [p for p, r in self.results.items() if r.status in (FetchStatus.OK, FetchStatus.PARTIAL)]

    @property
    def failed(self) -> list[Provider]:
        return [
            p for p, r in self.results.items()
            if r.status in (FetchStatus.UNAVAILABLE, FetchStatus.AUTH_REQUIRED)
        ]

    @property
    def reauthorize(self) -> list[Provider]:
        return [p for p, r in self.results.items() if r.status == FetchStatus.AUTH_REQUIRED]

    def signals(self) -> list[str]:
        collected = []
        for result in self.results.values():
            collected.extend(result.signals)
        return collected

    def data_sources(self) -> dict[str, dict[str, Any]]:
        """Per-provider counts and status, stored with the briefing."""
        return {
            provider.value: {"status": result.status.value, "count": len(result.items)}
            for provider, result in self.results.items()
        }

    def summary(self) -> dict[str, Any]:
        """Small payload for progress events."""
        return {
            "succeeded": [p.value for p in self.succeeded],
            "failed": [p.value for p in self.failed],
            "items": self.total_items,
        }
