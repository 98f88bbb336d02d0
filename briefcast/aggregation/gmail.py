"""Gmail fetcher for unread important mail."""

import asyncio
import re
from datetime import datetime, timezone
from typing import Optional
import logging

from .base import BaseFetcher, FetchContext
from ..errors import AuthRequiredError
from ..models import ContentItem, Credential, Provider, SourceFetchResult


logger = logging.getLogger(__name__)

GMAIL_API = "https://gmail.googleapis.com/gmail/v1/users/me"

BLOCKED_SENDER_PATTERNS = [
    re.compile(r"no-?reply", re.I),
    re.compile(r"mailer-daemon", re.I),
    re.compile(r"notification", re.I),
]
BLOCKED_SUBJECT_PATTERNS = [
    re.compile(r"promotion", re.I),
    re.compile(r"newsletter", re.I),
    re.compile(r"unsubscribe", re.I),
    re.compile(r"광고"),
    re.compile(r"뉴스레터"),
]
BLOCKED_LABELS = {"CATEGORY_PROMOTIONS", "CATEGORY_SOCIAL"}


class GmailFetcher(BaseFetcher):
    """
    Unread mail that is important or in the inbox.
    Promotions, social mail, newsletters and automated senders are dropped.
    """

    provider = Provider.GMAIL
    QUERY = "is:unread (is:important OR in:inbox)"

    async def fetch(self, credential: Optional[Credential], context: FetchContext) -> SourceFetchResult:
        listing = await self.get_json(
            f"{GMAIL_API}/messages",
            credential,
            params={"q": self.QUERY, "maxResults": context.limit * 2},
        )
        message_ids = [m["id"] for m in listing.get("messages", [])]
        if not message_ids:
            return self.build_result([])

        details = await asyncio.gather(
            *(self._fetch_message(credential, message_id) for message_id in message_ids),
            return_exceptions=True,
        )

        items, errors = [], []
        for message_id, detail in zip(message_ids, details):
            if isinstance(detail, AuthRequiredError):
                raise detail
            if isinstance(detail, Exception):
                errors.append(f"message {message_id}: {detail}")
                continue
            if self._is_blocked(detail):
                continue
            items.append(detail)

        items.sort(key=lambda item: item.timestamp or datetime.min, reverse=True)
        logger.info(f"Gmail: {len(items)} of {len(message_ids)} messages kept")
        return self.build_result(items[:context.limit], errors)

    async def _fetch_message(self, credential: Credential, message_id: str) -> ContentItem:
        data = await self.get_json(
            f"{GMAIL_API}/messages/{message_id}",
            credential,
            params=[
                ("format", "metadata"),
                ("metadataHeaders", "From"),
                ("metadataHeaders", "Subject"),
                ("metadataHeaders", "Date"),
            ],
        )
        headers = {h["name"]: h.get("value", "") for h in data.get("payload", {}).get("headers", [])}
        sender = headers.get("From", "Unknown sender").replace('"', "")
        subject = headers.get("Subject", "").strip() or "(no subject)"

        timestamp = None
        if data.get("internalDate"):
            timestamp = datetime.fromtimestamp(int(data["internalDate"]) / 1000, tz=timezone.utc).replace(tzinfo=None)

        return ContentItem(
            source_id=message_id,
            provider=self.provider,
            title=subject,
            body=data.get("snippet", ""),
            timestamp=timestamp,
            metadata={"from": sender, "labels": data.get("labelIds", [])},
        )

    @staticmethod
    def _is_blocked(item: ContentItem) -> bool:
        if BLOCKED_LABELS.intersection(item.metadata.get("labels", [])):
            return True
        sender = item.metadata.get("from", "")
        if any(pattern.search(sender) for pattern in BLOCKED_SENDER_PATTERNS):
            return True
        return any(pattern.search(item.title) for pattern in BLOCKED_SUBJECT_PATTERNS)
