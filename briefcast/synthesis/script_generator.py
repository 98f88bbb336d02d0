"""Script synthesis: one generative call per briefing section."""

import logging
import re
from typing import Optional

from .llm import GeminiTextClient
from ..errors import NoContentError, SynthesisFailure
from ..models import (
    AggregatedContent,
    ContentItem,
    InterestProfile,
    Provider,
    ScriptDocument,
    ScriptSection,
)


logger = logging.getLogger(__name__)

# (label, provider, heading used in the prompt)
SOURCE_SECTIONS = [
    ("schedule", Provider.CALENDAR, "today's calendar events"),
    ("mail", Provider.GMAIL, "unread important emails"),
    ("team", Provider.SLACK, "Slack messages that mention the listener and new direct messages"),
    ("documents", Provider.NOTION, "recently edited notes and documents"),
    ("videos", Provider.YOUTUBE, "videos the listener recently watched (transcript excerpts)"),
]

SPEAKER_LINE_RE = re.compile(r"^\**\s*(?P<speaker>[\w .'-]{1,30}?)\s*\**\s*:\s*\**\s*(?P<text>.+)$")


class ScriptSynthesizer:
    """
    Builds a two-voice ScriptDocument.

    Each section is generated separately; a section whose generation fails
    is left out. If nothing could be generated the run has nothing to say
    and NoContentError is raised.
    """

    SECTION_PROMPT = """You are writing one segment of a personal morning audio briefing.
Two hosts talk: {host} leads, {guest} reacts and asks short follow-up questions.

SEGMENT: {heading}

MATERIAL:
{material}

{interests}
Rules:
- Language: {language}
- 4 to 10 lines of dialogue, conversational and concrete
- Every line starts with "{host}:" or "{guest}:"
- Mention only facts found in the material; skip anything trivial
- No greeting or sign-off (they are added separately), no markdown, no emojis"""

    TREND_PROMPT = """You are writing one segment of a personal morning audio briefing.
Two hosts talk: {host} leads, {guest} reacts and asks short follow-up questions.

TREND TOPIC: {topic}

RECENT NEWS:
{material}

{interests}
Rules:
- Language: {language}
- 300 to 500 characters of dialogue explaining what is new about this topic and why it matters
- Every line starts with "{host}:" or "{guest}:"
- No greeting or sign-off, no markdown, no emojis"""

    OPENING = "{host}: Good morning! This is your briefing for {date}.\n{guest}: Let's get you ready for the day."
    CLOSING = "{host}: That's everything for today's briefing.\n{guest}: Have a great day, see you tomorrow!"

    def __init__(
        self,
        llm: GeminiTextClient,
        host_speaker: str = "Host",
        guest_speaker: str = "Guest",
        language: str = "en",
    ):
        self.llm = llm
        self.host = host_speaker
        self.guest = guest_speaker
        self.language = language

    async def synthesize(
        self,
        content: AggregatedContent,
        interests: InterestProfile,
        trend_topics: Optional[list[str]] = None,
        briefing_date: str = "today",
    ) -> ScriptDocument:
        if content.is_empty:
            raise NoContentError("aggregated content is empty")

        plans = self.plan_sections(content, interests, trend_topics)
        if not plans:
            raise NoContentError("no section has material")

        sections = []
        failed = []
        for label, prompt in plans:
            try:
                text = await self.llm.complete(prompt)
                dialogue = self.format_dialogue(text)
                if not dialogue:
                    raise SynthesisFailure(f"{label}: model returned no dialogue")
                sections.append(ScriptSection(label=label, text=dialogue))
                logger.info(f"Generated section '{label}' ({len(dialogue)} chars)")
            except SynthesisFailure as e:
                failed.append(label)
                logger.warning(f"Section '{label}' failed and was omitted: {e}")

        if not sections:
            raise NoContentError(f"all {len(plans)} sections failed: {', '.join(failed)}")

        opening = ScriptSection(
            label="opening",
            text=self.OPENING.format(host=self.host, guest=self.guest, date=briefing_date),
        )
        closing = ScriptSection(label="closing", text=self.CLOSING.format(host=self.host, guest=self.guest))

        logger.info(f"Script ready: {len(sections)}/{len(plans)} sections")
        return ScriptDocument(sections=(opening, *sections, closing))

    def plan_sections(
        self,
        content: AggregatedContent,
        interests: InterestProfile,
        trend_topics: Optional[list[str]] = None,
    ) -> list[tuple[str, str]]:
        """(label, prompt) for every section that has material, in narration order."""
        interest_line = ""
        if interests.keywords:
            interest_line = f"The listener is especially interested in: {', '.join(interests.keywords)}\n"

        plans = []
        for label, provider, heading in SOURCE_SECTIONS:
            items = content.items(provider)
            if not items:
                continue
            prompt = self.SECTION_PROMPT.format(
                host=self.host,
                guest=self.guest,
                heading=heading,
                material="\n".join(describe_item(item) for item in items),
                interests=interest_line,
                language=self.language,
            )
            plans.append((label, prompt))

        trend_items = {item.title: item for item in content.items(Provider.TRENDS)}
        topics = trend_topics or list(trend_items)
        for topic in topics:
            item = trend_items.get(topic)
            if item is None:
                continue
            prompt = self.TREND_PROMPT.format(
                host=self.host,
                guest=self.guest,
                topic=topic,
                material=item.body[:4000],
                interests=interest_line,
                language=self.language,
            )
            plans.append((f"trend:{topic}", prompt))

        return plans

    def format_dialogue(self, text: str) -> str:
        """
        One speaker-labeled line per turn. Unlabeled lines go to the host;
        headings and stray markdown are dropped.
        """
        lines = []
        for raw in text.splitlines():
            line = raw.strip()
            if not line or line.startswith("#") or set(line) <= {"-", "*", "_"}:
                continue
            match = SPEAKER_LINE_RE.match(line)
            if match and match.group("speaker").strip().lower() in (self.host.lower(), self.guest.lower()):
                speaker = self.host if match.group("speaker").strip().lower() == self.host.lower() else self.guest
                spoken = match.group("text").strip().strip("*").strip()
            else:
                speaker, spoken = self.host, line.strip("*").strip()
            if spoken:
                lines.append(f"{speaker}: {spoken}")
        return "\n".join(lines)


def describe_item(item: ContentItem) -> str:
    """One material line per item, shaped by its provider."""
    if item.provider == Provider.GMAIL:
        return f"- From {item.metadata.get('from', 'unknown')}: \"{item.title}\". {item.body[:300]}"
    if item.provider == Provider.CALENDAR:
        return f"- {item.title} ({item.body[:300]})"
    if item.provider == Provider.YOUTUBE:
        excerpt = item.metadata.get("excerpt") or item.body
        return f"- Video \"{item.title}\": {excerpt[:3000]}"
    if item.provider == Provider.SLACK:
        return f"- {item.title}: {item.body[:500]}"
    if item.provider == Provider.NOTION:
        return f"- Page \"{item.title}\": {item.body[:800]}"
    return f"- {item.title}: {item.body[:800]}"
