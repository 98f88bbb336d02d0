"""
Unit tests for the Gmail, Calendar, Notion and Slack fetchers.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock


def _credential(provider):
    from briefcast.models import Credential

    return Credential(provider=provider, access_token="token")


def _routes(mapping):
    """get_json/post_json replacement answering by URL suffix."""
    async def handler(url, credential=None, **kwargs):
        for suffix, answer in mapping.items():
            if url.endswith(suffix):
                if isinstance(answer, Exception):
                    raise answer
                return answer
        raise AssertionError(f"unexpected url {url}")
    return handler


@pytest.mark.unit
class TestGmailFetcher:
    """Tests for GmailFetcher."""

    def _message(self, message_id, sender, subject, internal_date, labels=("INBOX",)):
        return {
            "id": message_id,
            "snippet": f"snippet {message_id}",
            "internalDate": str(internal_date),
            "labelIds": list(labels),
            "payload": {"headers": [
                {"name": "From", "value": sender},
                {"name": "Subject", "value": subject},
            ]},
        }

    @pytest.mark.asyncio
    async def test_filters_and_sorts_messages(self):
        """Automated and promotional mail is dropped; newest first."""
        from briefcast.aggregation import FetchContext, GmailFetcher
        from briefcast.models import FetchStatus, Provider

        fetcher = GmailFetcher(MagicMock())
        fetcher.get_json = AsyncMock(side_effect=_routes({
            "/messages": {"messages": [{"id": "m1"}, {"id": "m2"}, {"id": "m3"}, {"id": "m4"}]},
            "/messages/m1": self._message("m1", '"Alice" <alice@example.com>', "Lunch?", 1_700_000_000_000),
            "/messages/m2": self._message("m2", "noreply@shop.com", "Your order", 1_700_000_100_000),
            "/messages/m3": self._message("m3", "bob@example.com", "Contract draft", 1_700_000_200_000),
            "/messages/m4": self._message("m4", "deals@shop.com", "Sale", 1_700_000_300_000, ["CATEGORY_PROMOTIONS"]),
        }))

        result = await fetcher.fetch(_credential(Provider.GMAIL), FetchContext(user_id="u", limit=10))

        assert result.status == FetchStatus.OK
        assert [item.source_id for item in result.items] == ["m3", "m1"]
        assert result.items[1].metadata["from"] == "Alice <alice@example.com>"

    @pytest.mark.asyncio
    async def test_failed_message_is_partial(self):
        from briefcast.aggregation import FetchContext, GmailFetcher
        from briefcast.models import FetchStatus, Provider

        fetcher = GmailFetcher(MagicMock())
        fetcher.get_json = AsyncMock(side_effect=_routes({
            "/messages": {"messages": [{"id": "m1"}, {"id": "m2"}]},
            "/messages/m1": self._message("m1", "alice@example.com", "Hi", 1_700_000_000_000),
            "/messages/m2": RuntimeError("HTTP 500"),
        }))

        result = await fetcher.fetch(_credential(Provider.GMAIL), FetchContext(user_id="u"))

        assert result.status == FetchStatus.PARTIAL
        assert len(result.items) == 1

    @pytest.mark.asyncio
    async def test_rejected_credential_propagates(self):
        """An auth failure on any message fails the whole fetch."""
        from briefcast.aggregation import FetchContext, GmailFetcher
        from briefcast.errors import AuthRequiredError
        from briefcast.models import Provider

        fetcher = GmailFetcher(MagicMock())
        fetcher.get_json = AsyncMock(side_effect=_routes({
            "/messages": {"messages": [{"id": "m1"}]},
            "/messages/m1": AuthRequiredError("gmail"),
        }))

        with pytest.raises(AuthRequiredError):
            await fetcher.fetch(_credential(Provider.GMAIL), FetchContext(user_id="u"))


@pytest.mark.unit
class TestCalendarFetcher:
    """Tests for CalendarFetcher."""

    @pytest.mark.asyncio
    async def test_events_across_calendars(self):
        """Events are merged and ordered; a failing calendar makes the result partial."""
        from briefcast.aggregation import CalendarFetcher, FetchContext
        from briefcast.models import FetchStatus, Provider

        fetcher = CalendarFetcher(MagicMock())
        fetcher.get_json = AsyncMock(side_effect=_routes({
            "/calendarList": {"items": [
                {"id": "work", "summary": "Work"},
                {"id": "family", "summary": "Family"},
                {"id": "broken"},
            ]},
            "/calendars/work/events": {"items": [{
                "id": "e2",
                "summary": "Design review",
                "start": {"dateTime": "2025-03-02T14:00:00+09:00"},
                "end": {"dateTime": "2025-03-02T15:00:00+09:00"},
                "location": "Room 4",
                "attendees": [{"email": "kim@example.com"}],
            }]},
            "/calendars/family/events": {"items": [{
                "id": "e1",
                "summary": "School run",
                "start": {"dateTime": "2025-03-02T08:00:00+09:00"},
                "end": {"dateTime": "2025-03-02T08:30:00+09:00"},
            }]},
            "/calendars/broken/events": RuntimeError("HTTP 404"),
        }))

        result = await fetcher.fetch(_credential(Provider.CALENDAR), FetchContext(user_id="u"))

        assert result.status == FetchStatus.PARTIAL
        assert [item.title for item in result.items] == ["School run", "Design review"]
        review = result.items[1]
        assert "Location: Room 4" in review.body
        assert review.metadata["calendar"] == "Work"
        assert review.metadata["attendees"] == ["kim@example.com"]
        assert review.timestamp.hour == 5

    def test_parse_time(self):
        from briefcast.aggregation.google_calendar import _parse_time

        assert _parse_time("2025-03-02").day == 2
        assert _parse_time("2025-03-02T10:00:00Z").hour == 10
        assert _parse_time("") is None
        assert _parse_time("tomorrow") is None


@pytest.mark.unit
class TestNotionFetcher:
    """Tests for NotionFetcher."""

    @pytest.mark.asyncio
    async def test_pages_with_block_text(self):
        """Pages keep their title even when their blocks fail."""
        from briefcast.aggregation import FetchContext, NotionFetcher
        from briefcast.models import FetchStatus, Provider

        fetcher = NotionFetcher(MagicMock())
        fetcher.post_json = AsyncMock(return_value={"results": [
            {
                "id": "p1",
                "url": "https://notion.so/p1",
                "last_edited_time": "2025-03-01T23:00:00.000Z",
                "properties": {"title": {"title": [{"plain_text": "Roadmap"}]}},
            },
            {"id": "p2", "properties": {"Name": {"title": [{"plain_text": "Reading list"}]}}},
        ]})
        fetcher.get_json = AsyncMock(side_effect=_routes({
            "/blocks/p1/children": {"results": [
                {"type": "heading_2", "heading_2": {"rich_text": [{"plain_text": "Q3"}]}},
                {"type": "image", "image": {}},
                {"type": "to_do", "to_do": {"rich_text": [{"plain_text": "Ship "}, {"plain_text": "beta"}]}},
            ]},
            "/blocks/p2/children": RuntimeError("HTTP 502"),
        }))

        result = await fetcher.fetch(_credential(Provider.NOTION), FetchContext(user_id="u"))

        assert result.status == FetchStatus.PARTIAL
        assert [item.title for item in result.items] == ["Roadmap", "Reading list"]
        assert result.items[0].body == "Q3\nShip beta"
        assert result.items[1].body == ""
        headers = fetcher.post_json.call_args.kwargs["headers"]
        assert headers["Notion-Version"] == "2022-06-28"

    def test_page_title_fallback(self):
        from briefcast.aggregation.notion import page_title

        assert page_title({}) == "Untitled"
        assert page_title({"properties": {"Title": {"rich_text": [{"plain_text": "Notes"}]}}}) == "Notes"


def _slack_api(answers):
    """MockTransport handler answering Slack Web API methods; answers keyed by method or (method, channel/types)."""
    import httpx

    def handler(request):
        method = request.url.path.rsplit("/", 1)[-1]
        params = request.url.params
        key = (method, params.get("channel") or params.get("types") or params.get("user"))
        answer = answers.get(key, answers.get(method))
        if answer is None:
            raise AssertionError(f"unexpected call {key}")
        if isinstance(answer, int):
            return httpx.Response(answer)
        return httpx.Response(200, json=answer)

    return handler


@pytest.mark.unit
class TestSlackFetcher:
    """Tests for SlackFetcher."""

    def _answers(self, **overrides):
        answers = {
            "auth.test": {"ok": True, "user_id": "UME"},
            ("conversations.list", "public_channel,private_channel"): {"ok": True, "channels": [
                {"id": "C1", "name": "launch"},
                {"id": "C2", "name": "random"},
            ]},
            ("conversations.history", "C1"): {"ok": True, "messages": [
                {"user": "U2", "text": "<@UME> can you review the rollout plan?", "ts": "1740870000.000100"},
                {"user": "U3", "text": "lunch?", "ts": "1740870001.000100"},
            ]},
            ("conversations.history", "C2"): {"ok": False, "error": "channel_not_found"},
            ("conversations.list", "im"): {"ok": True, "channels": [{"id": "D1"}]},
            ("conversations.history", "D1"): {"ok": True, "messages": [
                {"user": "UME", "text": "sure", "ts": "1740870100.0"},
                {"user": "U3", "text": "Are we still on for 3pm?", "ts": "1740870090.0"},
            ]},
            ("users.info", "U2"): {"ok": True, "user": {"real_name": "Dana Kim", "name": "dana"}},
            ("users.info", "U3"): {"ok": False, "error": "user_not_found"},
        }
        answers.update(overrides)
        return answers

    @pytest.mark.asyncio
    async def test_mentions_and_direct_messages(self):
        """Mentions come first, own DMs are skipped, a failing channel makes the result partial."""
        import httpx
        from briefcast.aggregation import FetchContext, SlackFetcher
        from briefcast.models import FetchStatus, Provider

        async with httpx.AsyncClient(transport=httpx.MockTransport(_slack_api(self._answers()))) as http:
            result = await SlackFetcher(http).fetch(_credential(Provider.SLACK), FetchContext(user_id="u"))

        assert result.status == FetchStatus.PARTIAL
        assert "channel_not_found" in result.error
        assert [item.title for item in result.items] == ["Dana Kim in #launch", "Direct message from Unknown"]
        assert result.items[0].body == "@you can you review the rollout plan?"
        assert result.items[0].metadata["kind"] == "mention"
        assert result.items[0].timestamp is not None
        assert result.items[1].body == "Are we still on for 3pm?"

    @pytest.mark.asyncio
    async def test_revoked_token_requires_reauthorization(self):
        """Slack's ok=false auth errors surface as AuthRequiredError."""
        import httpx
        from briefcast.aggregation import FetchContext, SlackFetcher
        from briefcast.errors import AuthRequiredError
        from briefcast.models import Provider

        answers = self._answers(**{"auth.test": {"ok": False, "error": "token_revoked"}})
        async with httpx.AsyncClient(transport=httpx.MockTransport(_slack_api(answers))) as http:
            with pytest.raises(AuthRequiredError):
                await SlackFetcher(http).fetch(_credential(Provider.SLACK), FetchContext(user_id="u"))

    @pytest.mark.asyncio
    async def test_mention_limit(self):
        """At most context.limit mentions are kept."""
        import httpx
        from briefcast.aggregation import FetchContext, SlackFetcher
        from briefcast.models import Provider

        many = {"ok": True, "messages": [
            {"user": "U2", "text": f"<@UME> question {i}", "ts": f"17408700{i:02d}.0"} for i in range(10)
        ]}
        answers = self._answers()
        answers.update({
            ("conversations.history", "C1"): many,
            ("conversations.list", "im"): {"ok": True, "channels": []},
        })
        async with httpx.AsyncClient(transport=httpx.MockTransport(_slack_api(answers))) as http:
            result = await SlackFetcher(http).fetch(_credential(Provider.SLACK), FetchContext(user_id="u", limit=3))

        assert len(result.items) == 3
