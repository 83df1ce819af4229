"""Fixed-window request rate limiting.

RedisRateLimiter uses the INCR-first pattern: the first hit in a window sets
the key TTL, so counters expire on their own. Keys look like
``rl:{policy_id}:{client_key_hash}:{window_index}``.

Redis errors fail OPEN (request allowed, error logged). Rate limiting is a
protection against abuse, not an access control; authentication stays
fail-closed regardless.
"""

import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Optional, Protocol

import redis

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of one rate limit check (fields map onto IETF RateLimit headers)."""

    allowed: bool
    policy_id: str
    quota: int
    window: int
    remaining: int
    reset: int  # seconds until the window resets


class RateLimiter(Protocol):
    def check_rate_limit(self, key: str, path: str) -> RateLimitResult:
        ...


def policy_for_path(path: str) -> str:
    """Route group for a request path; sign-in gets its own, stricter bucket."""
    return "auth" if path.rstrip("/") == "/api/v1/auth/login" else "api"


class NoOpRateLimiter:
    """Always allows. Used when RATE_LIMIT_ENABLED is off and in tests."""

    def __init__(self, quota: int = 100, window: int = 900):
        self.quota = quota
        self.window = window

    def check_rate_limit(self, key: str, path: str) -> RateLimitResult:
        return RateLimitResult(
            allowed=True,
            policy_id=policy_for_path(path),
            quota=self.quota,
            window=self.window,
            remaining=self.quota,
            reset=self.window,
        )


class RedisRateLimiter:
    """Redis-backed fixed-window limiter with a separate quota for sign-in."""

    def __init__(
        self,
        client: redis.Redis,
        quota: int,
        window: int,
        auth_quota: int,
        clock=time.time,
    ):
        self._redis = client
        self._window = window
        self._quotas = {"api": quota, "auth": auth_quota}
        self._clock = clock

    def check_rate_limit(self, key: str, path: str) -> RateLimitResult:
        policy_id = policy_for_path(path)
        quota = self._quotas[policy_id]

        now = self._clock()
        window_index = int(now // self._window)
        reset = max(1, int((window_index + 1) * self._window - now))
        key_hash = hashlib.sha256(key.encode()).hexdigest()[:32]
        redis_key = f"rl:{policy_id}:{key_hash}:{window_index}"

        try:
            count = self._redis.incr(redis_key)
            if count == 1:
                self._redis.expire(redis_key, self._window)
        except redis.RedisError as exc:
            logger.error(
                "Rate limiter unavailable, allowing request",
                extra={"event": "rate_limit.backend_error", "error_type": type(exc).__name__},
            )
            return RateLimitResult(
                allowed=True,
                policy_id=policy_id,
                quota=quota,
                window=self._window,
                remaining=quota,
                reset=reset,
            )

        return RateLimitResult(
            allowed=count <= quota,
            policy_id=policy_id,
            quota=quota,
            window=self._window,
            remaining=max(0, quota - count),
            reset=reset,
        )


def client_key_for(client_host: Optional[str]) -> str:
    """Limiter identity: the client IP.

    Limits run before authentication, so nothing the caller sends (e.g. a
    bearer value) may pick the bucket.
    """
    return f"ip:{client_host or 'anonymous'}"
