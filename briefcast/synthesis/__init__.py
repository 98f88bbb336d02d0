"""Generative text stages: interests and narration script."""

from .llm import GeminiClientPool, GeminiTextClient
from .decoding import decode_json_best_effort
from .interests import InterestCache, InterestSynthesizer
from .script_generator import ScriptSynthesizer

__all__ = [
    "GeminiClientPool",
    "GeminiTextClient",
    "decode_json_best_effort",
    "InterestCache",
    "InterestSynthesizer",
    "ScriptSynthesizer",
]
