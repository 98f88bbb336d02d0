"""Interest/persona synthesis from viewing-history signals."""

import logging
from typing import Optional

from .decoding import decode_json_best_effort
from .llm import GeminiTextClient
from ..errors import SynthesisFailure
from ..models import InterestProfile, InterestStatus
from ..utils.cache import InMemoryCache


logger = logging.getLogger(__name__)

MAX_KEYWORDS = 15
MAX_SIGNALS = 50


class InterestCache:
    """Per-user profiles kept until explicitly invalidated."""

    def __init__(self, cache: Optional[InMemoryCache] = None):
        self._cache = cache or InMemoryCache(max_size=10000)

    def get(self, user_id: str) -> Optional[InterestProfile]:
        return self._cache.get(f"interests:{user_id}")

    def set(self, user_id: str, profile: InterestProfile) -> None:
        self._cache.set(f"interests:{user_id}", profile, ttl=0)

    def invalidate(self, user_id: str) -> bool:
        removed = self._cache.delete(f"interests:{user_id}")
        if removed:
            logger.info(f"Invalidated interest profile for {user_id}")
        return removed


class InterestSynthesizer:
    """
    Reduces raw signals (mostly watched video titles) into 10-15 short
    keywords with one generative call. Never raises.
    """

    PROMPT = """Below are titles of videos a person recently watched or liked.
Infer the topics this person is interested in.

VIDEOS:
{signals}

Rules:
- Return 10 to 15 short keywords (1-3 words each), most characteristic first
- Write the keywords in this language: {language}
- Prefer specific topics ("electric vehicles") over vague ones ("technology")
- No duplicates, no channel names, no hashtags

Return ONLY a JSON array of strings, for example:
["keyword one", "keyword two"]"""

    def __init__(self, llm: GeminiTextClient, cache: Optional[InterestCache] = None, language: str = "en"):
        self.llm = llm
        self.cache = cache or InterestCache()
        self.language = language

    async def synthesize(self, signals: list[str], language: Optional[str] = None) -> InterestProfile:
        signals = [s.strip() for s in signals if s and s.strip()][:MAX_SIGNALS]
        if not signals:
            logger.info("No interest signals, returning empty profile")
            return InterestProfile.empty(InterestStatus.EMPTY)

        prompt = self.PROMPT.format(
            signals="\n".join(f"- {s}" for s in signals),
            language=language or self.language,
        )
        try:
            text = await self.llm.complete(prompt, temperature=0.3)
        except SynthesisFailure as e:
            logger.warning(f"Interest synthesis failed: {e}")
            return InterestProfile.empty(InterestStatus.FAILED)

        decoded = decode_json_best_effort(text, list, fallback=None)
        if decoded is None:
            return InterestProfile.empty(InterestStatus.FAILED)

        keywords = normalize_keywords(decoded)
        if not keywords:
            return InterestProfile.empty(InterestStatus.EMPTY)

        logger.info(f"Synthesized {len(keywords)} interest keywords from {len(signals)} signals")
        return InterestProfile(keywords=keywords, status=InterestStatus.GENERATED)

    async def get_or_synthesize(self, user_id: str, signals: list[str]) -> InterestProfile:
        """Cached profile, else a fresh one. Only generated profiles are cached."""
        cached = self.cache.get(user_id)
        if cached is not None:
            return cached

        profile = await self.synthesize(signals)
        if profile.status == InterestStatus.GENERATED:
            self.cache.set(user_id, profile)
        return profile


def normalize_keywords(values: list) -> list[str]:
    """Strings only, trimmed, de-duplicated case-insensitively, capped."""
    seen = set()
    keywords = []
    for value in values:
        if not isinstance(value, str):
            continue
        keyword = value.strip().strip("#").strip()
        if not keyword or keyword.lower() in seen:
            continue
        seen.add(keyword.lower())
        keywords.append(keyword)
    return keywords[:MAX_KEYWORDS]
