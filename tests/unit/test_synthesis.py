"""
Unit tests for Gemini access, decoding, interests and script synthesis.
"""

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock

from conftest import FakeLLM


def _rate_limited():
    from google.genai import errors as genai_errors

    return genai_errors.APIError(429, {"error": {"code": 429, "message": "quota", "status": "RESOURCE_EXHAUSTED"}})


@pytest.mark.unit
class TestGeminiClientPool:
    """Tests for key rotation."""

    @pytest.mark.asyncio
    async def test_rotates_key_on_rate_limit(self):
        """A 429 moves to the next key."""
        from briefcast.synthesis import GeminiClientPool

        pool = GeminiClientPool(["key-a", "key-b"], retry_delay_seconds=0, client_factory=lambda key: key)
        used = []

        async def operation(client):
            used.append(client)
            if client == "key-a":
                raise _rate_limited()
            return "ok"

        assert await pool.call(operation, timeout=1) == "ok"
        assert used == ["key-a", "key-b"]

    @pytest.mark.asyncio
    async def test_gives_up_after_every_key_is_limited(self):
        """Two rounds over all keys, then SynthesisFailure."""
        from briefcast.errors import SynthesisFailure
        from briefcast.synthesis import GeminiClientPool

        pool = GeminiClientPool(["key-a", "key-b"], retry_delay_seconds=0, client_factory=lambda key: key)
        operation = AsyncMock(side_effect=_rate_limited())

        with pytest.raises(SynthesisFailure):
            await pool.call(operation, timeout=1)
        assert operation.await_count == 4

    @pytest.mark.asyncio
    async def test_timeout_raises_synthesis_failure(self):
        """Calls that exceed the timeout fail the stage."""
        from briefcast.errors import SynthesisFailure
        from briefcast.synthesis import GeminiClientPool

        pool = GeminiClientPool(["key-a"], client_factory=lambda key: key)

        async def slow(client):
            await asyncio.sleep(1)

        with pytest.raises(SynthesisFailure, match="timed out"):
            await pool.call(slow, timeout=0.01)

    def test_requires_a_key(self):
        """An empty key list is rejected."""
        from briefcast.synthesis import GeminiClientPool

        with pytest.raises(ValueError):
            GeminiClientPool([])


@pytest.mark.unit
class TestGeminiTextClient:
    """Tests for GeminiTextClient."""

    def _pool(self, text):
        from briefcast.synthesis import GeminiClientPool

        client = MagicMock()
        client.aio.models.generate_content = AsyncMock(return_value=MagicMock(text=text))
        return GeminiClientPool(["key"], client_factory=lambda key: client), client

    @pytest.mark.asyncio
    async def test_complete_returns_text(self):
        """Text is stripped and grounding adds the search tool."""
        from briefcast.synthesis import GeminiTextClient

        pool, client = self._pool("  hello  ")
        text = await GeminiTextClient(pool, model="m").complete("prompt", grounded=True)

        assert text == "hello"
        config = client.aio.models.generate_content.call_args.kwargs["config"]
        assert config.tools and config.tools[0].google_search is not None

    @pytest.mark.asyncio
    async def test_empty_response_fails(self):
        """Blank responses raise SynthesisFailure."""
        from briefcast.errors import SynthesisFailure
        from briefcast.synthesis import GeminiTextClient

        pool, _ = self._pool("   ")
        with pytest.raises(SynthesisFailure):
            await GeminiTextClient(pool).complete("prompt")


@pytest.mark.unit
class TestDecoding:
    """Tests for best-effort JSON decoding."""

    def test_strict_json(self):
        from briefcast.synthesis.decoding import decode_json_best_effort

        assert decode_json_best_effort('["a", "b"]', list, None) == ["a", "b"]

    def test_fenced_json(self):
        """Markdown code fences are removed."""
        from briefcast.synthesis.decoding import decode_json_best_effort

        text = '```json\n["rust", "gardening"]\n```'
        assert decode_json_best_effort(text, list, None) == ["rust", "gardening"]

    def test_embedded_json(self):
        """JSON inside prose is found by scanning."""
        from briefcast.synthesis.decoding import decode_json_best_effort

        text = 'Sure! [draft] Here they are: ["ai", "chess"] Hope that helps.'
        assert decode_json_best_effort(text, list, None) == ["ai", "chess"]

    def test_wrong_shape_falls_back(self):
        """An object where a list is expected yields the fallback."""
        from briefcast.synthesis.decoding import decode_json_best_effort

        assert decode_json_best_effort('{"keywords": []}', list, []) == []
        assert decode_json_best_effort("", dict, {"x": 1}) == {"x": 1}
        assert decode_json_best_effort("not json at all", list, "fallback") == "fallback"


@pytest.mark.unit
class TestInterestSynthesizer:
    """Tests for InterestSynthesizer."""

    @pytest.mark.asyncio
    async def test_generated_profile(self):
        """Keywords are decoded, de-duplicated and capped."""
        from briefcast.models import InterestStatus
        from briefcast.synthesis import InterestSynthesizer

        keywords = [f"topic {i}" for i in range(20)] + ["Topic 1"]
        llm = FakeLLM(lambda prompt: str(keywords).replace("'", '"'))

        profile = await InterestSynthesizer(llm).synthesize(["Video A", "Video B"])

        assert profile.status == InterestStatus.GENERATED
        assert len(profile.keywords) == 15
        assert profile.keywords[0] == "topic 0"
        assert "Video A" in llm.prompts[0]

    @pytest.mark.asyncio
    async def test_no_signals_is_empty(self):
        """Nothing to learn from means no model call."""
        from briefcast.models import InterestStatus
        from briefcast.synthesis import InterestSynthesizer

        llm = FakeLLM()
        profile = await InterestSynthesizer(llm).synthesize(["", "   "])

        assert profile.status == InterestStatus.EMPTY
        assert llm.prompts == []

    @pytest.mark.asyncio
    async def test_model_failure_is_failed_status(self):
        """A failed call degrades to a failed profile instead of raising."""
        from briefcast.errors import SynthesisFailure
        from briefcast.models import InterestStatus
        from briefcast.synthesis import InterestSynthesizer

        def boom(prompt):
            raise SynthesisFailure("quota")

        profile = await InterestSynthesizer(FakeLLM(boom)).synthesize(["Video"])
        assert profile.status == InterestStatus.FAILED

    @pytest.mark.asyncio
    async def test_undecodable_output_is_failed_status(self):
        from briefcast.models import InterestStatus
        from briefcast.synthesis import InterestSynthesizer

        profile = await InterestSynthesizer(FakeLLM(lambda p: "I cannot help")).synthesize(["Video"])
        assert profile.status == InterestStatus.FAILED

    @pytest.mark.asyncio
    async def test_only_generated_profiles_are_cached(self):
        """Failed profiles are retried next time; generated ones are reused."""
        from briefcast.synthesis import InterestCache, InterestSynthesizer

        responses = iter(["garbage", '["ai"]', '["other"]'])
        llm = FakeLLM(lambda prompt: next(responses))
        cache = InterestCache()
        synthesizer = InterestSynthesizer(llm, cache)

        first = await synthesizer.get_or_synthesize("user-1", ["Video"])
        second = await synthesizer.get_or_synthesize("user-1", ["Video"])
        third = await synthesizer.get_or_synthesize("user-1", ["Video"])

        assert first.keywords == []
        assert second.keywords == ["ai"]
        assert third is second
        assert len(llm.prompts) == 2

        assert cache.invalidate("user-1") is True
        assert cache.get("user-1") is None


@pytest.mark.unit
class TestScriptSynthesizer:
    """Tests for ScriptSynthesizer."""

    def _content(self, **counts):
        from briefcast.models import AggregatedContent, ContentItem, Provider, SourceFetchResult

        results = {}
        for name, count in counts.items():
            provider = Provider(name)
            results[provider] = SourceFetchResult(provider=provider, items=[
                ContentItem(
                    source_id=f"{name}-{i}",
                    provider=provider,
                    title=f"{name} item {i}",
                    body=f"details {i}",
                    metadata={"from": "boss@example.com"},
                )
                for i in range(count)
            ])
        return AggregatedContent(results=results)

    def _synthesizer(self, responder):
        from briefcast.synthesis import ScriptSynthesizer

        return ScriptSynthesizer(FakeLLM(responder), host_speaker="Host", guest_speaker="Guest")

    @pytest.mark.asyncio
    async def test_sections_in_narration_order(self):
        """Opening, one section per source with material, closing."""
        from briefcast.models import InterestProfile, InterestStatus

        synthesizer = self._synthesizer(lambda p: "Host: Here is the news.\nGuest: Interesting!")
        content = self._content(gmail=2, calendar=1)
        interests = InterestProfile(keywords=["ai"], status=InterestStatus.GENERATED)

        script = await synthesizer.synthesize(content, interests, briefing_date="2025-03-02")

        assert script.labels == ["opening", "schedule", "mail", "closing"]
        assert "2025-03-02" in script.sections[0].text
        assert "ai" in synthesizer.llm.prompts[0]
        assert "boss@example.com" in synthesizer.llm.prompts[1]

    @pytest.mark.asyncio
    async def test_failed_section_is_omitted(self):
        """A section whose call fails is left out."""
        from briefcast.errors import SynthesisFailure
        from briefcast.models import InterestProfile

        def responder(prompt):
            if "unread important emails" in prompt:
                raise SynthesisFailure("timeout")
            return "Host: Your day looks calm."

        script = await self._synthesizer(responder).synthesize(
            self._content(gmail=1, calendar=1), InterestProfile.empty(),
        )

        assert script.labels == ["opening", "schedule", "closing"]

    @pytest.mark.asyncio
    async def test_all_sections_failing_raises_no_content(self):
        """With every section failed there is nothing to narrate."""
        from briefcast.errors import NoContentError, SynthesisFailure
        from briefcast.models import InterestProfile

        def responder(prompt):
            raise SynthesisFailure("down")

        with pytest.raises(NoContentError):
            await self._synthesizer(responder).synthesize(
                self._content(gmail=1, notion=2), InterestProfile.empty(),
            )

    @pytest.mark.asyncio
    async def test_empty_content_raises_no_content(self):
        from briefcast.errors import NoContentError
        from briefcast.models import AggregatedContent, InterestProfile

        with pytest.raises(NoContentError):
            await self._synthesizer(lambda p: "Host: hi").synthesize(AggregatedContent(), InterestProfile.empty())

    @pytest.mark.asyncio
    async def test_trend_sections_follow_topic_order(self):
        """Trend sections are labeled by topic and ordered by the requested topics."""
        from briefcast.models import (
            AggregatedContent, ContentItem, InterestProfile, Provider, SourceFetchResult,
        )

        content = AggregatedContent(results={
            Provider.TRENDS: SourceFetchResult(provider=Provider.TRENDS, items=[
                ContentItem(source_id="t1", provider=Provider.TRENDS, title="EVs", body="news"),
                ContentItem(source_id="t2", provider=Provider.TRENDS, title="AI", body="news"),
            ]),
        })

        script = await self._synthesizer(lambda p: "Host: Big week.").synthesize(
            content, InterestProfile.empty(), trend_topics=["AI", "EVs", "Missing"],
        )

        assert script.labels == ["opening", "trend:AI", "trend:EVs", "closing"]

    def test_format_dialogue(self):
        """Labels are normalized, markdown dropped, unlabeled lines go to the host."""
        synthesizer = self._synthesizer(lambda p: "")

        text = "## Segment\n**Host:** Hello!\nguest: Hi there.\n---\nA stray sentence.\n"

        assert synthesizer.format_dialogue(text) == (
            "Host: Hello!\nGuest: Hi there.\nHost: A stray sentence."
        )

    @pytest.mark.asyncio
    async def test_slack_messages_get_a_team_section(self):
        """Slack material is narrated between mail and documents."""
        from briefcast.models import InterestProfile

        synthesizer = self._synthesizer(lambda p: "Host: Dana needs a review.")
        content = self._content(notion=1, slack=2, gmail=1)

        script = await synthesizer.synthesize(content, InterestProfile.empty())

        assert script.labels == ["opening", "mail", "team", "documents", "closing"]
        assert "slack item 0" in synthesizer.llm.prompts[1]


@pytest.mark.unit
class TestTransportFailures:
    """Network errors from the Gemini SDK stay inside the stage that hit them."""

    def _text_client(self, failing_marker):
        """GeminiTextClient whose SDK call raises ConnectError for prompts containing ``failing_marker``."""
        import httpx
        from briefcast.synthesis import GeminiClientPool, GeminiTextClient

        async def generate_content(model, contents, config):
            if failing_marker in contents:
                raise httpx.ConnectError("connection reset")
            return MagicMock(text="Host: All quiet today.\nGuest: Good.")

        client = MagicMock()
        client.aio.models.generate_content = generate_content
        pool = GeminiClientPool(["key"], client_factory=lambda key: client)
        return GeminiTextClient(pool, model="m")

    @pytest.mark.asyncio
    async def test_pool_wraps_transport_errors(self):
        import httpx
        from briefcast.errors import SynthesisFailure
        from briefcast.synthesis import GeminiClientPool

        pool = GeminiClientPool(["key"], client_factory=lambda key: key)
        operation = AsyncMock(side_effect=httpx.ReadTimeout("read timed out"))

        with pytest.raises(SynthesisFailure, match="read timed out"):
            await pool.call(operation, timeout=1)
        assert operation.await_count == 1

    @pytest.mark.asyncio
    async def test_one_section_losing_its_connection_keeps_the_rest(self):
        from briefcast.models import (
            AggregatedContent, ContentItem, InterestProfile, Provider, SourceFetchResult,
        )
        from briefcast.synthesis import ScriptSynthesizer

        content = AggregatedContent(results={
            provider: SourceFetchResult(provider=provider, items=[
                ContentItem(source_id=f"{provider.value}-1", provider=provider, title="item", body="details"),
            ])
            for provider in (Provider.CALENDAR, Provider.GMAIL)
        })
        synthesizer = ScriptSynthesizer(self._text_client("unread important emails"))

        script = await synthesizer.synthesize(content, InterestProfile.empty())

        assert script.labels == ["opening", "schedule", "closing"]

    @pytest.mark.asyncio
    async def test_interest_prompt_losing_its_connection_is_failed_status(self):
        from briefcast.models import InterestStatus
        from briefcast.synthesis import InterestSynthesizer

        profile = await InterestSynthesizer(self._text_client("Zigbee")).synthesize(["Zigbee basics"])

        assert profile.status == InterestStatus.FAILED
        assert profile.keywords == []

    @pytest.mark.asyncio
    async def test_one_trend_topic_losing_its_connection_keeps_the_rest(self):
        import httpx
        from briefcast.aggregation import FetchContext
        from briefcast.aggregation.trends import TrendFetcher
        from briefcast.models import FetchStatus

        fetcher = TrendFetcher(httpx.AsyncClient(), self._text_client("about: EVs"))
        context = FetchContext(user_id="user-1", trend_topics=["AI", "EVs"])

        result = await fetcher.fetch(None, context)

        assert [item.title for item in result.items] == ["AI"]
        assert result.status == FetchStatus.PARTIAL
