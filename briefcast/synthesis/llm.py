"""
Gemini access shared by the text and speech stages.

GEMINI_API_KEY may hold several comma-separated keys; a rate-limited
(HTTP 429) call moves on to the next key after a short delay.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ..errors import SynthesisFailure


logger = logging.getLogger(__name__)

T = TypeVar("T")


class GeminiClientPool:
    """One lazily created genai.Client per API key, rotated on rate limits."""

    def __init__(
        self,
        api_keys: list[str],
        retry_delay_seconds: float = 5.0,
        client_factory: Callable[[str], Any] = None,
    ):
        if not api_keys:
            raise ValueError("At least one Gemini API key is required")
        self.api_keys = list(api_keys)
        self.retry_delay_seconds = retry_delay_seconds
        self._client_factory = client_factory or (lambda key: genai.Client(api_key=key))
        self._clients: dict[int, Any] = {}
        self._current = 0

    def client(self, index: Optional[int] = None) -> Any:
        index = self._current if index is None else index
        if index not in self._clients:
            self._clients[index] = self._client_factory(self.api_keys[index])
        return self._clients[index]

    @property
    def max_attempts(self) -> int:
        return len(self.api_keys) * 2

    async def call(self, operation: Callable[[Any], Awaitable[T]], timeout: float, label: str = "gemini") -> T:
        """
        Run ``operation(client)`` under ``timeout``.

        Raises SynthesisFailure on timeout, on any non-rate-limit error
        (transport failures included), or once every key has been rate
        limited twice.
        """
        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_attempts + 1):
            client = self.client()
            try:
                return await asyncio.wait_for(operation(client), timeout=timeout)
            except asyncio.TimeoutError as e:
                logger.error(f"{label} timed out after {timeout}s")
                raise SynthesisFailure(f"{label} timed out after {timeout}s") from e
            except genai_errors.APIError as e:
                if e.code != 429:
                    logger.error(f"{label} failed: {e}")
                    raise SynthesisFailure(f"{label} failed: {e}") from e
                last_error = e
                self._current = (self._current + 1) % len(self.api_keys)
                logger.warning(
                    f"{label} rate limited (attempt {attempt}/{self.max_attempts}), "
                    f"switching to key #{self._current + 1}"
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.retry_delay_seconds)
            except SynthesisFailure:
                raise
            except Exception as e:
                # transport errors (httpx, aiohttp) reach us unwrapped
                logger.error(f"{label} failed: {type(e).__name__}: {e}")
                raise SynthesisFailure(f"{label} failed: {e}") from e

        raise SynthesisFailure(f"{label} rate limited on every key: {last_error}")


class GeminiTextClient:
    """complete(prompt) -> text, with optional Google Search grounding."""

    def __init__(self, pool: GeminiClientPool, model: str = "gemini-2.5-flash", timeout: float = 180.0):
        self.pool = pool
        self.model = model
        self.timeout = timeout

    async def complete(self, prompt: str, grounded: bool = False, temperature: float = 0.7) -> str:
        config = types.GenerateContentConfig(temperature=temperature)
        if grounded:
            config.tools = [types.Tool(google_search=types.GoogleSearch())]

        async def generate(client):
            return await client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
                config=config,
            )

        response = await self.pool.call(generate, timeout=self.timeout, label=f"{self.model} completion")
        text = response.text or ""
        if not text.strip():
            raise SynthesisFailure(f"{self.model} returned an empty response")
        return text.strip()
