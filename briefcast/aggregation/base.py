"""Base fetcher class for content sources."""

from abc import ABC, abstractmethod
from typing import Any, Optional
import logging

import httpx
from pydantic import BaseModel, Field

from ..errors import AuthRequiredError, UpstreamUnavailable
from ..models import ContentItem, Credential, FetchStatus, Provider, SourceFetchResult


logger = logging.getLogger(__name__)


class FetchContext(BaseModel):
    """Per-run inputs every fetcher may use."""

    user_id: str
    limit: int = 10
    timezone: str = "Asia/Seoul"
    language: str = "en"
    trend_topics: list[str] = Field(default_factory=list)
    playlist_ids: list[str] = Field(default_factory=list)


class BaseFetcher(ABC):
    """
    Abstract base class for provider fetchers.
    Fetchers return a SourceFetchResult and raise only AuthRequiredError
    (credential rejected) or transport errors; the aggregator maps both.
    """

    provider: Provider
    requires_credential = True

    def __init__(self, http: httpx.AsyncClient):
        self.http = http
        self.fetch_count = 0
        self.error_count = 0

    @abstractmethod
    async def fetch(self, credential: Optional[Credential], context: FetchContext) -> SourceFetchResult:
        """
        Fetch a bounded slice of recent content.

        Args:
            credential: Valid credential, or None when requires_credential is False
            context: Per-run inputs

        Returns:
            SourceFetchResult for this provider
        """
        pass

    async def get_json(
        self,
        url: str,
        credential: Optional[Credential] = None,
        params: Any = None,
        headers: Optional[dict[str, str]] = None,
    ) -> dict:
        """GET with bearer auth; 401/403 become AuthRequiredError, 5xx UpstreamUnavailable."""
        request_headers = dict(headers or {})
        if credential is not None:
            request_headers["Authorization"] = f"Bearer {credential.access_token}"
        response = await self.http.get(url, params=params, headers=request_headers)
        return self._check(response)

    async def post_json(
        self,
        url: str,
        credential: Optional[Credential] = None,
        json: Optional[dict] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> dict:
        request_headers = dict(headers or {})
        if credential is not None:
            request_headers["Authorization"] = f"Bearer {credential.access_token}"
        response = await self.http.post(url, json=json, headers=request_headers)
        return self._check(response)

    def _check(self, response: httpx.Response) -> dict:
        if response.status_code in (401, 403):
            raise AuthRequiredError(self.provider.value, f"{self.provider.value} rejected the credential")
        if response.status_code >= 500:
            raise UpstreamUnavailable(f"{self.provider.value} answered HTTP {response.status_code}")
        response.raise_for_status()
        return response.json()

    def build_result(self, items: list[ContentItem], errors: Optional[list[str]] = None) -> SourceFetchResult:
        """
        ok when nothing failed, partial when some items failed,
        unavailable when every attempt failed.
        """
        errors = errors or []
        self.fetch_count += 1
        if errors:
            self.error_count += 1
        if not errors:
            return SourceFetchResult(provider=self.provider, items=items, status=FetchStatus.OK)
        message = "; ".join(errors[:3])
        if items:
            logger.warning(f"{self.provider.value}: {len(errors)} item(s) failed: {message}")
            return SourceFetchResult(provider=self.provider, items=items, status=FetchStatus.PARTIAL, error=message)
        return SourceFetchResult.unavailable(self.provider, message)

    def get_stats(self) -> dict:
        return {
            "provider": self.provider.value,
            "fetch_count": self.fetch_count,
            "error_count": self.error_count,
        }
