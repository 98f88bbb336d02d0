"""Script, audio, record and progress models."""

import re
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from ..utils.clock import utcnow


class InterestStatus(str, Enum):
    GENERATED = "generated"
    EMPTY = "empty"  # no signals, or the model returned nothing usable
    FAILED = "failed"  # the model call errored


class InterestProfile(BaseModel):
    """Ranked topical keywords inferred from a user's viewing history."""

    keywords: list[str] = Field(default_factory=list)
    status: InterestStatus = InterestStatus.EMPTY
    generated_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def empty(cls, status: InterestStatus = InterestStatus.EMPTY) -> "InterestProfile":
        return cls(keywords=[], status=status)


class ScriptSection(BaseModel):
    """One labeled block of narration."""

    model_config = ConfigDict(frozen=True)

    label: str
    text: str


SECTION_SEPARATOR = "\n\n"


class ScriptDocument(BaseModel):
    """
    Ordered narration sections plus the flattened text sent to speech.

    Frozen: a regeneration builds a new document rather than editing one.
    ``section_offsets`` gives each section's starting character in
    ``full_text`` so playback can be aligned to sections.
    """

    model_config = ConfigDict(frozen=True)

    sections: tuple[ScriptSection, ...] = ()

    @property
    def full_text(self) -> str:
        return SECTION_SEPARATOR.join(section.text for section in self.sections)

    @property
    def section_offsets(self) -> list[int]:
        offsets = []
        position = 0
        for section in self.sections:
            offsets.append(position)
            position += len(section.text) + len(SECTION_SEPARATOR)
        return offsets

    @property
    def labels(self) -> list[str]:
        return [section.label for section in self.sections]

    def to_section_data(self) -> list[dict[str, Any]]:
        return [
            {"label": section.label, "text": section.text, "offset": offset}
            for section, offset in zip(self.sections, self.section_offsets)
        ]

    @classmethod
    def from_text(cls, text: str, labels: Sequence[str] = ()) -> "ScriptDocument":
        """
        Split flattened text back into sections at blank lines.
        ``labels`` are reused when the section count still matches.
        """
        chunks = [chunk.strip() for chunk in re.split(r"\n\s*\n", text) if chunk.strip()]
        if len(labels) != len(chunks):
            labels = [f"section-{i + 1}" for i in range(len(chunks))]
        return cls(sections=tuple(ScriptSection(label=label, text=chunk) for label, chunk in zip(labels, chunks)))

    @classmethod
    def from_section_data(cls, data: list[dict[str, Any]]) -> "ScriptDocument":
        return cls(
            sections=tuple(
                ScriptSection(label=entry.get("label", f"section-{i + 1}"), text=entry.get("text", ""))
                for i, entry in enumerate(data)
            )
        )


class AudioArtifact(BaseModel):
    """Synthesized speech once it is in object storage."""

    mime_type: str
    byte_length: int
    storage_url: str
    duration_estimate_seconds: float = 0.0


class BriefingRecord(BaseModel):
    """Durable briefing, unique per (user_id, date_key)."""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    user_id: str
    date_key: str
    script: str = ""
    section_data: list[dict[str, Any]] = Field(default_factory=list)
    audio_url: Optional[str] = None
    status: str = "completed"
    data_sources: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Stage(str, Enum):
    """Progress stages in the order a run passes through them."""

    STARTED = "started"
    AGGREGATING = "aggregating"
    SYNTHESIZING_INTERESTS = "synthesizing-interests"
    SYNTHESIZING_SCRIPT = "synthesizing-script"
    SYNTHESIZING_AUDIO = "synthesizing-audio"
    PERSISTING = "persisting"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (Stage.COMPLETED, Stage.ERROR)


class ProgressEvent(BaseModel):
    """One stage transition on the wire."""

    stage: Stage
    payload: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)
