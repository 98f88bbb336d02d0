"""Trend fetcher: recent news per topic via search-grounded Gemini."""

from typing import Optional
import logging

from .base import BaseFetcher, FetchContext
from ..errors import SynthesisFailure
from ..models import ContentItem, Credential, Provider, SourceFetchResult
from ..synthesis.llm import GeminiTextClient


logger = logging.getLogger(__name__)


class TrendFetcher(BaseFetcher):
    """One news digest item per trend topic. Needs no credential."""

    provider = Provider.TRENDS
    requires_credential = False

    NEWS_PROMPT = """Search for the most important news of the last 48 hours about: {topic}

Summarize 2-4 concrete developments. For each give what happened,
who is involved and why it matters. Write in this language: {language}.
Plain text only, no markdown."""

    def __init__(self, http, llm: GeminiTextClient, topic_limit: int = 3):
        super().__init__(http)
        self.llm = llm
        self.topic_limit = topic_limit

    async def fetch(self, credential: Optional[Credential], context: FetchContext) -> SourceFetchResult:
        topics = list(dict.fromkeys(t.strip() for t in context.trend_topics if t.strip()))[:self.topic_limit]
        if not topics:
            return self.build_result([])

        items, errors = [], []
        for topic in topics:
            try:
                news = await self.llm.complete(
                    self.NEWS_PROMPT.format(topic=topic, language=context.language),
                    grounded=True,
                    temperature=0.2,
                )
            except SynthesisFailure as e:
                logger.warning(f"Trend news for '{topic}' failed: {e}")
                errors.append(f"{topic}: {e}")
                continue

            items.append(ContentItem(
                source_id=ContentItem.generate_id(self.provider.value, topic),
                provider=self.provider,
                title=topic,
                body=news,
                metadata={"topic": topic},
            ))

        logger.info(f"Trends: {len(items)}/{len(topics)} topics researched")
        return self.build_result(items, errors)
