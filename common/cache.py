# common/cache.py
import json
import logging
from typing import Any, Optional

import redis

logger = logging.getLogger(__name__)


def connect_redis(redis_url: Optional[str]) -> Optional[redis.Redis]:
    """
    Return a Redis client for ``redis_url``, or None when caching is off.

    Caching is off when no URL is configured or the server does not
    answer a ping.
    """
    if not redis_url:
        return None

    try:
        client = redis.from_url(redis_url, decode_responses=True)
        client.ping()
    except redis.RedisError as exc:
        logger.warning(f"Redis unavailable at {redis_url}, caching disabled: {exc}")
        return None
    return client


class JsonCache:
    """
    JSON value cache on top of Redis.

    A cache built without a client is a no-op: reads miss and writes are
    dropped. Redis errors during use are logged and treated the same way.

    Parameters
    ----------
    client : redis.Redis, optional
        Connected client with ``decode_responses=True``.
    ttl_seconds : int
        Default expiry of stored values.
    """

    def __init__(self, client: Optional[redis.Redis] = None, ttl_seconds: int = 60):
        self.client = client
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_url(cls, redis_url: Optional[str], ttl_seconds: int = 60) -> "JsonCache":
        return cls(connect_redis(redis_url), ttl_seconds)

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def get(self, key: str) -> Optional[Any]:
        if self.client is None:
            return None
        try:
            raw = self.client.get(key)
        except redis.RedisError as exc:
            logger.warning(f"Cache read failed for {key}: {exc}")
            return None
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        if self.client is None:
            return
        try:
            self.client.setex(key, ttl_seconds or self.ttl_seconds, json.dumps(value, default=str))
        except redis.RedisError as exc:
            logger.warning(f"Cache write failed for {key}: {exc}")

    def delete_prefix(self, prefix: str) -> int:
        """
        Delete all keys starting with prefix.
        Example: prefix='rooms:list:'.
        """
        if self.client is None:
            return 0
        deleted = 0
        try:
            for key in self.client.scan_iter(prefix + "*"):
                deleted += self.client.delete(key)
        except redis.RedisError as exc:
            logger.warning(f"Cache invalidation failed for {prefix}*: {exc}")
        return deleted
