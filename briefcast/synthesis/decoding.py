"""Best-effort structured decoding of model output."""

import json
import logging
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_SCAN_ATTEMPTS = 20


def strip_code_fences(text: str) -> str:
    text = text.strip()
    if "```" in text:
        inner = text.split("```")
        # ```json\n[...]\n``` splits into ['', 'json\n[...]\n', '']
        if len(inner) >= 3:
            text = inner[1]
            if text.lower().startswith("json"):
                text = text[4:]
    return text.strip()


def decode_json_best_effort(text: str, expected_type: type, fallback: T) -> Any:
    """
    Decode ``text`` as JSON of ``expected_type``, never raising.

    1. Strict parse of the whole text (code fences removed)
    2. Decode starting at each opening bracket of the expected shape
    3. ``fallback``
    """
    if not text:
        return fallback

    candidate = strip_code_fences(text)
    try:
        value = json.loads(candidate)
        if isinstance(value, expected_type):
            return value
    except ValueError:
        pass

    opener = "[" if expected_type is list else "{"
    decoder = json.JSONDecoder()
    position = candidate.find(opener)
    attempts = 0
    while position != -1 and attempts < MAX_SCAN_ATTEMPTS:
        attempts += 1
        try:
            value, _ = decoder.raw_decode(candidate, position)
            if isinstance(value, expected_type):
                return value
        except ValueError:
            pass
        position = candidate.find(opener, position + 1)

    logger.warning(f"Could not decode {expected_type.__name__} from model output: {text[:120]!r}")
    return fallback
