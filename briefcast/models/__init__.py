"""Data models for the briefing pipeline."""

from .content import (
    Provider,
    GOOGLE_PROVIDERS,
    Credential,
    AuthRequired,
    TokenGrant,
    FetchStatus,
    ContentItem,
    SourceFetchResult,
    AggregatedContent,
)
from .briefing import (
    InterestStatus,
    InterestProfile,
    ScriptSection,
    ScriptDocument,
    AudioArtifact,
    BriefingRecord,
    Stage,
    ProgressEvent,
)

__all__ = [
    # Source models
    "Provider",
    "GOOGLE_PROVIDERS",
    "Credential",
    "AuthRequired",
    "TokenGrant",
    "FetchStatus",
    "ContentItem",
    "SourceFetchResult",
    "AggregatedContent",
    # Briefing models
    "InterestStatus",
    "InterestProfile",
    "ScriptSection",
    "ScriptDocument",
    "AudioArtifact",
    "BriefingRecord",
    "Stage",
    "ProgressEvent",
]
