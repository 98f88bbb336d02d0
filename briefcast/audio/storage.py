"""Object storage for synthesized audio (Supabase Storage)."""

import asyncio
import logging

from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from ..errors import PersistenceError


logger = logging.getLogger(__name__)


class SupabaseObjectStorage:
    """
    put(bytes, name) -> public URL.

    The Supabase client is injected and owned by the application. Uploads
    are retried with exponential backoff, then surface as PersistenceError.
    """

    def __init__(self, client, bucket: str = "podcasts", max_attempts: int = 3, wait=None):
        self.client = client
        self.bucket = bucket
        self.max_attempts = max_attempts
        self.wait = wait or wait_exponential(multiplier=1, min=1, max=10)

    def _upload(self, data: bytes, name: str, content_type: str) -> str:
        bucket = self.client.storage.from_(self.bucket)
        bucket.upload(
            path=name,
            file=data,
            file_options={"content-type": content_type, "upsert": "true"},
        )
        return bucket.get_public_url(name)

    async def put(self, data: bytes, name: str, content_type: str) -> str:
        if self.client is None:
            raise PersistenceError("object storage is not configured")
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=self.wait,
                reraise=True,
            ):
                with attempt:
                    attempt_num = attempt.retry_state.attempt_number
                    if attempt_num > 1:
                        logger.warning(f"Retrying upload of {name} (attempt {attempt_num}/{self.max_attempts})")
                    url = await asyncio.to_thread(self._upload, data, name, content_type)
        except Exception as e:
            logger.error(f"Upload of {name} failed after {self.max_attempts} attempts: {e}")
            raise PersistenceError(f"upload failed: {e}") from e

        logger.info(f"Uploaded {name} ({len(data)} bytes) to {self.bucket}")
        return url
