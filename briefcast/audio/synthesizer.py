"""Audio stage: script -> speech -> stored artifact."""

import logging
import secrets
from typing import Protocol

from .storage import SupabaseObjectStorage
from .tts import estimate_duration, prepare_audio
from ..models import AudioArtifact, ScriptDocument


logger = logging.getLogger(__name__)


class SpeechProvider(Protocol):
    async def synthesize(self, script: str) -> tuple[bytes, str]: ...


class AudioSynthesizer:
    """
    Speech synthesis runs once; only the upload is retried (inside storage),
    since synthesizing again costs far more than uploading again.
    """

    def __init__(self, speech: SpeechProvider, storage: SupabaseObjectStorage):
        self.speech = speech
        self.storage = storage

    async def synthesize(self, script: ScriptDocument, user_id: str, date_key: str) -> AudioArtifact:
        text = script.full_text
        data, mime_type = await self.speech.synthesize(text)
        prepared = prepare_audio(data, mime_type)

        # Unique per run so a regenerated briefing never reuses a cached URL
        name = f"briefings/{user_id}/{date_key}-{secrets.token_hex(4)}.{prepared.extension}"
        url = await self.storage.put(prepared.data, name, prepared.mime_type)

        duration = prepared.duration_seconds
        if duration is None:
            duration = estimate_duration(text)

        logger.info(f"Audio ready for {user_id}: {prepared.extension}, ~{duration / 60:.1f} minutes")
        return AudioArtifact(
            mime_type=prepared.mime_type,
            byte_length=len(prepared.data),
            storage_url=url,
            duration_estimate_seconds=round(duration, 1),
        )
