"""Notion fetcher for recently edited pages."""

from datetime import datetime, timezone
from typing import Optional
import logging

from .base import BaseFetcher, FetchContext
from ..errors import AuthRequiredError
from ..models import ContentItem, Credential, Provider, SourceFetchResult


logger = logging.getLogger(__name__)

NOTION_API = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"

TEXT_BLOCK_TYPES = (
    "paragraph",
    "heading_1",
    "heading_2",
    "heading_3",
    "bulleted_list_item",
    "numbered_list_item",
    "to_do",
    "quote",
    "callout",
)


class NotionFetcher(BaseFetcher):
    """
    Pages sorted by last edit. Page text comes from the first blocks;
    a page whose blocks fail to load is kept with its title only.
    """

    provider = Provider.NOTION
    MAX_BLOCKS = 20

    async def fetch(self, credential: Optional[Credential], context: FetchContext) -> SourceFetchResult:
        headers = {"Notion-Version": NOTION_VERSION}
        search = await self.post_json(
            f"{NOTION_API}/search",
            credential,
            json={
                "filter": {"property": "object", "value": "page"},
                "sort": {"direction": "descending", "timestamp": "last_edited_time"},
                "page_size": context.limit,
            },
            headers=headers,
        )

        items, errors = [], []
        for page in search.get("results", []):
            text = ""
            try:
                blocks = await self.get_json(
                    f"{NOTION_API}/blocks/{page['id']}/children",
                    credential,
                    params={"page_size": self.MAX_BLOCKS},
                    headers=headers,
                )
                text = "\n".join(filter(None, (block_text(b) for b in blocks.get("results", []))))
            except AuthRequiredError:
                raise
            except Exception as e:
                errors.append(f"page {page['id']}: {e}")

            items.append(ContentItem(
                source_id=page["id"],
                provider=self.provider,
                title=page_title(page),
                body=text,
                timestamp=_parse_time(page.get("last_edited_time")),
                url=page.get("url"),
            ))

        logger.info(f"Notion: {len(items)} recent pages")
        return self.build_result(items, errors)


def page_title(page: dict) -> str:
    """Title from the title/Title/Name property, else Untitled."""
    properties = page.get("properties") or {}
    prop = properties.get("title") or properties.get("Title") or properties.get("Name")
    if prop:
        for key in ("title", "rich_text"):
            parts = prop.get(key)
            if isinstance(parts, list) and parts:
                return parts[0].get("plain_text") or "Untitled"
    return "Untitled"


def block_text(block: dict) -> str:
    block_type = block.get("type")
    if block_type not in TEXT_BLOCK_TYPES:
        return ""
    rich_text = block.get(block_type, {}).get("rich_text", [])
    return "".join(part.get("plain_text", "") for part in rich_text).strip()


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).astimezone(timezone.utc).replace(tzinfo=None)
    except ValueError:
        return None
