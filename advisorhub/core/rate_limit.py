"""In-memory rate limiter using sliding window counters.

Suitable for single-process deployments; state lives in a dict of
timestamps per client key.
"""

import time
import logging
from collections import defaultdict
from dataclasses import dataclass

from fastapi import Request

logger = logging.getLogger(__name__)


@dataclass
class RateLimitConfig:
    """Rate limit configuration: max `calls` per `window` seconds."""
    calls: int
    window: int  # seconds


# Default rate limits per route prefix
RATE_LIMITS: dict[str, RateLimitConfig] = {
    "/api/v1/messaging": RateLimitConfig(calls=20, window=60),
    "/api/v1/leads/import": RateLimitConfig(calls=5, window=60),
    "/api/v1/clients/import": RateLimitConfig(calls=5, window=60),
    # General API: generous limit
    "/api/v1/": RateLimitConfig(calls=120, window=60),
}


class RateLimiter:
    """Sliding window counter rate limiter."""

    def __init__(self):
        # key -> list of timestamps
        self._requests: dict[str, list[float]] = defaultdict(list)

    def _clean(self, key: str, window: int) -> None:
        cutoff = time.monotonic() - window
        self._requests[key] = [
            ts for ts in self._requests[key] if ts > cutoff
        ]

    def check(self, key: str, config: RateLimitConfig) -> tuple[bool, int]:
        """Check if request is allowed.

        Returns (allowed, remaining_calls).
        """
        self._clean(key, config.window)
        count = len(self._requests[key])
        if count >= config.calls:
            return False, 0
        return True, config.calls - count - 1

    def record(self, key: str) -> None:
        self._requests[key].append(time.monotonic())

    def reset(self, key: str | None = None) -> None:
        """Reset rate limit state. If key is None, reset all."""
        if key is None:
            self._requests.clear()
        else:
            self._requests.pop(key, None)


# Singleton
_limiter = RateLimiter()


def get_rate_limiter() -> RateLimiter:
    return _limiter


def get_client_ip(request: Request) -> str:
    """Extract client IP, respecting X-Forwarded-For."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def find_config(path: str) -> tuple[str, RateLimitConfig] | None:
    """Find the most specific rate limit prefix and config for a path."""
    best: tuple[str, RateLimitConfig] | None = None
    for prefix, config in RATE_LIMITS.items():
        if path.startswith(prefix) and (best is None or len(prefix) > len(best[0])):
            best = (prefix, config)
    return best
