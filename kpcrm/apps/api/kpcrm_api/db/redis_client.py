"""Redis client construction for the rate limiter."""

from typing import Optional
from urllib.parse import urlparse

import redis


def create_redis_client(redis_url: str, redis_password: Optional[str] = None) -> redis.Redis:
    """
    Build a Redis client from REDIS_URL / REDIS_PASSWORD.

    - REDIS_URL e.g. redis://host:6379/0 or rediss://...
    - REDIS_PASSWORD: applied only if the URL carries no password

    The connection is opened lazily on first command, so building the client
    never blocks app startup.

    Returns:
        redis.Redis: Redis client
    """
    parsed = urlparse(redis_url)

    kwargs = {
        "decode_responses": True,
        "socket_connect_timeout": 2,
        "socket_timeout": 2,
        "health_check_interval": 30,
    }

    if not parsed.password and redis_password:
        kwargs["password"] = redis_password

    return redis.from_url(redis_url, **kwargs)
