"""
Rate limiting for the generation endpoint.

Sliding window per key, held in process memory; one API process only.
"""

import time
import logging
from collections import defaultdict, deque
from threading import Lock

from fastapi import Depends, HTTPException, Request

from .auth import AuthUser, get_current_user

logger = logging.getLogger(__name__)


class RateLimiter:
    """Sliding-window limiter keyed by caller."""

    def __init__(self, clock=time.monotonic):
        self._hits: defaultdict[str, deque] = defaultdict(deque)
        self._lock = Lock()
        self._clock = clock

    def _prune(self, key: str, now: float, window_seconds: int):
        hits = self._hits[key]
        while hits and hits[0] <= now - window_seconds:
            hits.popleft()

    def is_rate_limited(self, key: str, max_requests: int, window_seconds: int) -> tuple[bool, dict]:
        """
        Record a request for ``key`` unless the window is full.

        Returns:
            (limited, info) where info has limit, remaining and, when
            limited, retry_after in whole seconds.
        """
        with self._lock:
            now = self._clock()
            self._prune(key, now, window_seconds)
            hits = self._hits[key]

            if len(hits) >= max_requests:
                retry_after = max(1, int(hits[0] + window_seconds - now) + 1)
                return True, {'limit': max_requests, 'remaining': 0, 'retry_after': retry_after}

            hits.append(now)
            return False, {'limit': max_requests, 'remaining': max_requests - len(hits)}

    def reset(self, key: str):
        with self._lock:
            self._hits.pop(key, None)

    def get_stats(self, key: str) -> dict:
        with self._lock:
            return {'key': key, 'request_count': len(self._hits.get(key, ()))}


async def generation_rate_limit(request: Request, user: AuthUser = Depends(get_current_user)) -> None:
    """Dependency limiting briefing generation per user."""
    settings = request.app.state.services.settings
    limiter: RateLimiter = request.app.state.rate_limiter

    limited, info = limiter.is_rate_limited(
        f"generate:{user.id}",
        settings.generation_rate_limit,
        settings.generation_rate_window_seconds,
    )
    if limited:
        logger.warning(f"Rate limit exceeded for {user.id} on generation")
        raise HTTPException(
            status_code=429,
            detail="Too many briefing requests. Please wait before trying again.",
            headers={"Retry-After": str(info['retry_after'])},
        )
