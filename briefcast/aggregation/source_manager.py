"""Content Aggregator: runs every enabled provider fetch for a user."""

import asyncio
from typing import Iterable, Optional
import logging

from .base import BaseFetcher, FetchContext
from ..connectors.registry import ConnectorRegistry
from ..errors import AuthRequiredError
from ..models import AggregatedContent, AuthRequired, Provider, SourceFetchResult
from ..utils.pacing import Pacer


logger = logging.getLogger(__name__)


class ContentAggregator:
    """
    Fans out over providers with a small concurrency cap.

    Every provider settles into a SourceFetchResult: a missing credential
    becomes authRequired, a timeout or upstream error becomes unavailable.
    Nothing raised by one provider reaches the others or the caller, and
    there is no retry at this layer.
    """

    def __init__(
        self,
        registry: ConnectorRegistry,
        fetchers: dict[Provider, BaseFetcher],
        timeout_seconds: float = 30.0,
        max_concurrency: int = 3,
        timeouts: Optional[dict[Provider, float]] = None,
    ):
        self.registry = registry
        self.fetchers = fetchers
        self.timeout_seconds = timeout_seconds
        self.timeouts = timeouts or {}
        self.pacer = Pacer(max_concurrency=max_concurrency)

    async def aggregate(
        self,
        user_id: str,
        providers: Iterable[Provider],
        context: Optional[FetchContext] = None,
    ) -> AggregatedContent:
        providers = list(dict.fromkeys(Provider(p) for p in providers))
        context = context or FetchContext(user_id=user_id)

        if not providers:
            logger.warning(f"No providers enabled for {user_id}")
            return AggregatedContent()

        logger.info(f"Aggregating {len(providers)} providers for {user_id}: {[p.value for p in providers]}")
        results = await self.pacer.map(lambda provider: self._fetch_one(user_id, provider, context), providers)

        aggregated = AggregatedContent(results=dict(zip(providers, results)))
        logger.info(
            f"Aggregated {aggregated.total_items} items "
            f"(ok: {[p.value for p in aggregated.succeeded]}, failed: {[p.value for p in aggregated.failed]})"
        )
        return aggregated

    async def _fetch_one(self, user_id: str, provider: Provider, context: FetchContext) -> SourceFetchResult:
        fetcher = self.fetchers.get(provider)
        if fetcher is None:
            return SourceFetchResult.unavailable(provider, "no fetcher configured")

        credential = None
        if fetcher.requires_credential:
            try:
                credential = await self.registry.get_valid_credential(user_id, provider)
            except Exception as e:
                logger.error(f"Credential lookup failed for {provider.value}: {e}")
                return SourceFetchResult.unavailable(provider, f"credential lookup failed: {e}")
            if isinstance(credential, AuthRequired):
                logger.info(f"{provider.value} skipped for {user_id}: {credential.reason}")
                return SourceFetchResult.auth_required(provider, credential.reason)

        timeout = self.timeouts.get(provider, self.timeout_seconds)
        try:
            result = await asyncio.wait_for(fetcher.fetch(credential, context), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{provider.value} timed out after {timeout}s")
            return SourceFetchResult.unavailable(provider, f"timed out after {timeout}s")
        except AuthRequiredError as e:
            logger.info(f"{provider.value} rejected the credential for {user_id}")
            return SourceFetchResult.auth_required(provider, str(e))
        except Exception as e:
            logger.error(f"Error fetching {provider.value}: {e}")
            return SourceFetchResult.unavailable(provider, str(e))

        logger.info(f"{provider.value}: {result.status.value} with {len(result.items)} items")
        return result
