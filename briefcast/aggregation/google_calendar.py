"""Google Calendar fetcher for today's events across all readable calendars."""

from datetime import datetime, timezone
from typing import Optional
import logging

from .base import BaseFetcher, FetchContext
from ..errors import AuthRequiredError
from ..models import ContentItem, Credential, Provider, SourceFetchResult
from ..utils.clock import day_bounds


logger = logging.getLogger(__name__)

CALENDAR_API = "https://www.googleapis.com/calendar/v3"


class CalendarFetcher(BaseFetcher):
    """One item per event; a calendar that fails to list is skipped."""

    provider = Provider.CALENDAR

    async def fetch(self, credential: Optional[Credential], context: FetchContext) -> SourceFetchResult:
        calendars = await self.get_json(
            f"{CALENDAR_API}/users/me/calendarList",
            credential,
            params={"minAccessRole": "reader"},
        )
        start, end = day_bounds(context.timezone)

        items, errors = [], []
        for calendar in calendars.get("items", []):
            calendar_id = calendar["id"]
            calendar_name = calendar.get("summary") or calendar_id
            try:
                events = await self.get_json(
                    f"{CALENDAR_API}/calendars/{calendar_id}/events",
                    credential,
                    params={
                        "timeMin": start.isoformat(),
                        "timeMax": end.isoformat(),
                        "maxResults": context.limit,
                        "singleEvents": "true",
                        "orderBy": "startTime",
                    },
                )
            except AuthRequiredError:
                raise
            except Exception as e:
                logger.warning(f"Calendar {calendar_name} failed: {e}")
                errors.append(f"{calendar_name}: {e}")
                continue

            for event in events.get("items", []):
                items.append(self._to_item(event, calendar_name))

        items.sort(key=lambda item: item.timestamp or datetime.max)
        logger.info(f"Calendar: {len(items)} events today")
        return self.build_result(items[:context.limit], errors)

    def _to_item(self, event: dict, calendar_name: str) -> ContentItem:
        start = event.get("start", {})
        end = event.get("end", {})
        start_raw = start.get("dateTime") or start.get("date") or ""
        end_raw = end.get("dateTime") or end.get("date") or ""

        lines = [f"Time: {start_raw} - {end_raw}"]
        if event.get("location"):
            lines.append(f"Location: {event['location']}")
        if event.get("description"):
            lines.append(event["description"][:500])

        return ContentItem(
            source_id=event["id"],
            provider=self.provider,
            title=event.get("summary") or "(untitled event)",
            body="\n".join(lines),
            timestamp=_parse_time(start_raw),
            metadata={
                "calendar": calendar_name,
                "all_day": "dateTime" not in start,
                "attendees": [a["email"] for a in event.get("attendees", []) if a.get("email")],
            },
        )


def _parse_time(value: str) -> Optional[datetime]:
    """ISO date or datetime to naive UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
