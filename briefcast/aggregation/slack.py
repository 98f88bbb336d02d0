"""Slack fetcher for recent mentions and direct messages."""

from datetime import datetime, timezone
from typing import Optional
import logging

from .base import BaseFetcher, FetchContext
from ..errors import AuthRequiredError, UpstreamUnavailable
from ..models import ContentItem, Credential, Provider, SourceFetchResult


logger = logging.getLogger(__name__)

SLACK_API = "https://slack.com/api"

# Slack answers HTTP 200 with ok=false; these codes mean the user token is gone
AUTH_ERRORS = frozenset({
    "invalid_auth",
    "not_authed",
    "token_revoked",
    "token_expired",
    "account_inactive",
    "missing_scope",
})


class SlackFetcher(BaseFetcher):
    """
    Messages that mention the user in their channels, then the newest
    direct messages from other people.

    Uses a user token from Slack's OAuth v2 flow. Slack user tokens are
    not refreshed here; a rejected token means reauthorization.
    """

    provider = Provider.SLACK
    MAX_CHANNELS = 20
    CHANNEL_HISTORY = 50
    MAX_DM_CHANNELS = 20
    DM_HISTORY = 10
    MAX_DMS = 5

    async def fetch(self, credential: Optional[Credential], context: FetchContext) -> SourceFetchResult:
        identity = await self.call("auth.test", credential)
        me = identity["user_id"]
        names: dict[str, str] = {me: "you"}
        errors: list[str] = []

        mentions = await self._mentions(credential, me, context.limit, names, errors)
        dms = await self._direct_messages(credential, me, names, errors)

        logger.info(f"Slack: {len(mentions)} mentions, {len(dms)} direct messages")
        return self.build_result(mentions + dms, errors)

    async def call(self, method: str, credential: Credential, **params) -> dict:
        """GET a Web API method and unwrap Slack's ok/error envelope."""
        data = await self.get_json(f"{SLACK_API}/{method}", credential, params=params or None)
        if data.get("ok"):
            return data
        error = data.get("error", "unknown_error")
        if error in AUTH_ERRORS:
            raise AuthRequiredError(self.provider.value, f"slack {method}: {error}")
        raise UpstreamUnavailable(f"slack {method}: {error}")

    async def _mentions(self, credential, me, limit, names, errors) -> list[ContentItem]:
        listing = await self.call(
            "conversations.list", credential,
            types="public_channel,private_channel", exclude_archived="true", limit=100,
        )
        tag = f"<@{me}>"
        items: list[ContentItem] = []
        for channel in listing.get("channels", [])[:self.MAX_CHANNELS]:
            try:
                history = await self.call("conversations.history", credential, channel=channel["id"], limit=self.CHANNEL_HISTORY)
            except AuthRequiredError:
                raise
            except Exception as e:
                errors.append(f"#{channel.get('name', channel['id'])}: {e}")
                continue

            for message in history.get("messages", []):
                if tag not in message.get("text", ""):
                    continue
                author = await self._user_name(credential, message.get("user"), names)
                items.append(self._to_item(
                    message,
                    channel["id"],
                    title=f"{author} in #{channel.get('name', 'unknown')}",
                    kind="mention",
                    author=author,
                    names=names,
                ))
                if len(items) >= limit:
                    return items
        return items

    async def _direct_messages(self, credential, me, names, errors) -> list[ContentItem]:
        listing = await self.call("conversations.list", credential, types="im", limit=self.MAX_DM_CHANNELS)
        items: list[ContentItem] = []
        for channel in listing.get("channels", []):
            try:
                history = await self.call("conversations.history", credential, channel=channel["id"], limit=self.DM_HISTORY)
            except AuthRequiredError:
                raise
            except Exception as e:
                errors.append(f"dm {channel['id']}: {e}")
                continue

            for message in history.get("messages", []):
                sender = message.get("user")
                if not sender or sender == me:
                    continue
                author = await self._user_name(credential, sender, names)
                items.append(self._to_item(
                    message, channel["id"], title=f"Direct message from {author}", kind="dm", author=author, names=names,
                ))
                if len(items) >= self.MAX_DMS:
                    return items
        return items

    async def _user_name(self, credential, user_id: Optional[str], names: dict[str, str]) -> str:
        if not user_id:
            return "Unknown"
        if user_id not in names:
            try:
                info = await self.call("users.info", credential, user=user_id)
                user = info.get("user", {})
                names[user_id] = user.get("real_name") or user.get("name") or "Unknown"
            except AuthRequiredError:
                raise
            except Exception as e:
                logger.debug(f"Slack user lookup failed for {user_id}: {e}")
                names[user_id] = "Unknown"
        return names[user_id]

    def _to_item(self, message: dict, channel_id: str, title: str, kind: str, author: str, names: dict) -> ContentItem:
        ts = message.get("ts", "")
        return ContentItem(
            source_id=f"{channel_id}:{ts}",
            provider=self.provider,
            title=title,
            body=readable_text(message.get("text", ""), names),
            timestamp=_parse_ts(ts),
            metadata={"kind": kind, "from": author, "channel": channel_id},
        )


def readable_text(text: str, names: dict[str, str]) -> str:
    """Replace <@U123> user tags with known names."""
    for user_id, name in names.items():
        text = text.replace(f"<@{user_id}>", f"@{name}")
    return text.strip()


def _parse_ts(ts: str) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(float(ts), timezone.utc).replace(tzinfo=None)
    except (TypeError, ValueError):
        return None
