"""Speech synthesis and audio storage."""

from .tts import GeminiSpeechSynthesizer, prepare_audio
from .storage import SupabaseObjectStorage
from .synthesizer import AudioSynthesizer

__all__ = ["GeminiSpeechSynthesizer", "prepare_audio", "SupabaseObjectStorage", "AudioSynthesizer"]
