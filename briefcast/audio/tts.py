"""Multi-speaker speech synthesis with Gemini native TTS."""

import io
import logging
import re
import wave
from typing import NamedTuple, Optional

from google.genai import types

from ..errors import SynthesisFailure
from ..synthesis.llm import GeminiClientPool


logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_RATE = 24000
WORDS_PER_MINUTE = 150

CONTAINER_EXTENSIONS = {
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/wave": "wav",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/ogg": "ogg",
    "audio/opus": "ogg",
}


class PreparedAudio(NamedTuple):
    data: bytes
    mime_type: str
    extension: str
    duration_seconds: Optional[float]  # None when the container is not inspected


class GeminiSpeechSynthesizer:
    """
    synthesize(script) -> (bytes, mime type).

    Script lines are expected as "<speaker>: <text>"; each of the two
    speakers gets its own prebuilt voice.
    """

    MAX_SCRIPT_CHARS = 32000

    def __init__(
        self,
        pool: GeminiClientPool,
        model: str = "gemini-2.5-flash-preview-tts",
        host_speaker: str = "Host",
        guest_speaker: str = "Guest",
        host_voice: str = "Kore",
        guest_voice: str = "Puck",
        timeout: float = 300.0,
    ):
        self.pool = pool
        self.model = model
        self.speakers = {host_speaker: host_voice, guest_speaker: guest_voice}
        self.timeout = timeout

    def _speech_config(self) -> types.SpeechConfig:
        return types.SpeechConfig(
            multi_speaker_voice_config=types.MultiSpeakerVoiceConfig(
                speaker_voice_configs=[
                    types.SpeakerVoiceConfig(
                        speaker=speaker,
                        voice_config=types.VoiceConfig(
                            prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=voice),
                        ),
                    )
                    for speaker, voice in self.speakers.items()
                ]
            )
        )

    async def synthesize(self, script: str) -> tuple[bytes, str]:
        if not script.strip():
            raise SynthesisFailure("empty script")
        if len(script) > self.MAX_SCRIPT_CHARS:
            logger.warning(f"Script truncated from {len(script)} to {self.MAX_SCRIPT_CHARS} characters")
            script = script[:self.MAX_SCRIPT_CHARS]

        host, guest = list(self.speakers)
        prompt = f"TTS the following conversation between {host} and {guest}:\n{script}"
        config = types.GenerateContentConfig(
            response_modalities=["AUDIO"],
            speech_config=self._speech_config(),
        )

        async def generate(client):
            return await client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
                config=config,
            )

        response = await self.pool.call(generate, timeout=self.timeout, label=f"{self.model} speech")

        try:
            inline = response.candidates[0].content.parts[0].inline_data
        except (AttributeError, IndexError, TypeError) as e:
            raise SynthesisFailure("speech response contained no audio") from e
        if inline is None or not inline.data:
            raise SynthesisFailure("speech response contained no audio")

        mime_type = inline.mime_type or f"audio/L16;rate={DEFAULT_SAMPLE_RATE}"
        logger.info(f"Synthesized {len(inline.data)} bytes of {mime_type}")
        return inline.data, mime_type


def prepare_audio(data: bytes, mime_type: str) -> PreparedAudio:
    """
    Choose the container from the returned MIME type.
    Raw PCM (L16) is wrapped into WAV; unknown types raise SynthesisFailure.
    """
    base = mime_type.split(";")[0].strip().lower()

    if "l16" in base or "pcm" in base:
        match = re.search(r"rate=(\d+)", mime_type)
        rate = int(match.group(1)) if match else DEFAULT_SAMPLE_RATE
        buffer = io.BytesIO()
        with wave.open(buffer, "wb") as wav_file:
            wav_file.setnchannels(1)  # Mono
            wav_file.setsampwidth(2)  # 16-bit
            wav_file.setframerate(rate)
            wav_file.writeframes(data)
        return PreparedAudio(buffer.getvalue(), "audio/wav", "wav", len(data) / (rate * 2))

    extension = CONTAINER_EXTENSIONS.get(base)
    if extension is None:
        raise SynthesisFailure(f"Unsupported audio type: {mime_type}")

    duration = None
    if extension == "wav":
        try:
            with wave.open(io.BytesIO(data), "rb") as wav_file:
                duration = wav_file.getnframes() / float(wav_file.getframerate())
        except (wave.Error, EOFError) as e:
            logger.warning(f"Could not read WAV header: {e}")
    return PreparedAudio(data, base, extension, duration)


def estimate_duration(script: str) -> float:
    """Seconds of speech at a typical narration pace."""
    return len(script.split()) / WORDS_PER_MINUTE * 60
