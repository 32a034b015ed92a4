"""Key-value cache backed by Redis, with an in-process fallback."""

from __future__ import annotations

import logging
import time
from threading import Lock

import redis

logger = logging.getLogger(__name__)


class KeyValueCache:
    """Small string cache used for lookups that are expensive to repeat.

    Redis is used while it is reachable; after the first connection error the
    instance switches to a process-local dictionary for the rest of its life.
    """

    def __init__(self, client: redis.Redis | None = None, *, prefix: str = "notestage") -> None:
        self._redis = client
        self._prefix = prefix
        self._local: dict[str, tuple[str, float | None]] = {}
        self._lock = Lock()

    @classmethod
    def from_url(cls, url: str, **kwargs) -> KeyValueCache:
        """Build a cache connected to the Redis server at ``url``."""
        return cls(redis.Redis.from_url(url, decode_responses=True), **kwargs)

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    def _drop_backend(self, exc: redis.RedisError) -> None:
        logger.warning("Cache backend unavailable, using in-process cache: %s", exc)
        self._redis = None

    def get(self, key: str) -> str | None:
        """Return the cached value for ``key`` or ``None``."""
        if self._redis is not None:
            try:
                value = self._redis.get(self._key(key))
                if isinstance(value, bytes):
                    return value.decode("utf-8")
                return value
            except redis.RedisError as exc:
                self._drop_backend(exc)

        with self._lock:
            entry = self._local.get(key)
            if entry is None:
                return None
            value, expiry = entry
            if expiry is not None and expiry < time.monotonic():
                self._local.pop(key, None)
                return None
            return value

    def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        """Store ``value`` under ``key``, optionally expiring after ``ttl_seconds``."""
        if self._redis is not None:
            try:
                self._redis.set(self._key(key), value, ex=ttl_seconds)
                return
            except redis.RedisError as exc:
                self._drop_backend(exc)

        expiry = time.monotonic() + ttl_seconds if ttl_seconds else None
        with self._lock:
            self._local[key] = (value, expiry)

    def delete(self, key: str) -> None:
        """Remove ``key`` from the cache."""
        if self._redis is not None:
            try:
                self._redis.delete(self._key(key))
                return
            except redis.RedisError as exc:
                self._drop_backend(exc)

        with self._lock:
            self._local.pop(key, None)
