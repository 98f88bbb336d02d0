"""WebVTT and SRT subtitle parsing."""

import re
from typing import NamedTuple


class TranscriptSegment(NamedTuple):
    text: str
    start: float  # seconds
    duration: float


TIMING_RE = re.compile(
    r"(?P<start>(?:\d{1,2}:)?\d{1,2}:\d{2}[.,]\d{1,3})\s*-->\s*(?P<end>(?:\d{1,2}:)?\d{1,2}:\d{2}[.,]\d{1,3})"
)
TAG_RE = re.compile(r"<[^>]+>")


def parse_timestamp(value: str) -> float:
    """'01:02:03,456', '02:03.456' -> seconds."""
    value = value.replace(",", ".")
    parts = value.split(":")
    seconds = float(parts[-1])
    minutes = int(parts[-2]) if len(parts) >= 2 else 0
    hours = int(parts[-3]) if len(parts) >= 3 else 0
    return hours * 3600 + minutes * 60 + seconds


def parse_subtitles(content: str) -> list[TranscriptSegment]:
    """
    Parse WebVTT or SRT into segments.

    Cue numbers, headers, styling tags and the rolling duplicates of
    auto-generated captions are dropped.
    """
    segments: list[TranscriptSegment] = []
    blocks = re.split(r"\r?\n\s*\r?\n", content.strip())
    previous_text = ""

    for block in blocks:
        lines = [line.strip() for line in block.splitlines() if line.strip()]
        timing_index = next((i for i, line in enumerate(lines) if TIMING_RE.search(line)), None)
        if timing_index is None:
            continue

        match = TIMING_RE.search(lines[timing_index])
        start = parse_timestamp(match.group("start"))
        end = parse_timestamp(match.group("end"))

        text_lines = [TAG_RE.sub("", line).strip() for line in lines[timing_index + 1:]]
        text_lines = [line for line in text_lines if line and line != previous_text]
        text = " ".join(text_lines).strip()
        if not text:
            continue

        previous_text = text_lines[-1]
        segments.append(TranscriptSegment(text=text, start=start, duration=max(0.0, end - start)))

    return segments


def central_excerpt(segments: list[TranscriptSegment], max_segments: int = 30) -> str:
    """Text of the middle ``max_segments`` segments."""
    if len(segments) <= max_segments:
        chosen = segments
    else:
        start = (len(segments) - max_segments) // 2
        chosen = segments[start:start + max_segments]
    return " ".join(segment.text for segment in chosen)
