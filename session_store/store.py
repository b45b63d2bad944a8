from __future__ import annotations  # Key-value session persistence with sliding TTL

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

import redis
from redis.exceptions import RedisError

from config import Settings
from observability import log_event


logger = logging.getLogger(__name__)

BACKEND_ERRORS: Tuple[type[BaseException], ...] = (RedisError, OSError)

REDIS_BACKEND = "redis"
MEMORY_BACKEND = "memory"


class SessionStore(Protocol):  # Contract shared by every backend
    def get(self, key: str) -> Optional[str]: ...

    def set_with_ttl(self, key: str, value: str, ttl: int) -> bool: ...

    def delete(self, key: str) -> bool: ...


class RedisClient(Protocol):  # Subset of redis-py used by the distributed backend
    def get(self, name: str) -> Any: ...

    def setex(self, name: str, time: int, value: str) -> Any: ...

    def delete(self, *names: str) -> int: ...

    def ping(self) -> Any: ...


class MemoryBackend:  # In-process map with expiry timestamps
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._items: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            value, expires_at = item
            if self._clock() >= expires_at:
                del self._items[key]
                return None
            return value

    def set_with_ttl(self, key: str, value: str, ttl: int) -> bool:
        with self._lock:
            now = self._clock()
            self._purge(now)
            self._items[key] = (value, now + ttl)
        return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._items.pop(key, None) is not None

    def ping(self) -> bool:
        return True

    def __len__(self) -> int:
        with self._lock:
            self._purge(self._clock())
            return len(self._items)

    def _purge(self, now: float) -> None:  # Drop expired entries; caller holds the lock
        expired = [key for key, (_, expires_at) in self._items.items() if now >= expires_at]
        for key in expired:
            del self._items[key]


class RedisBackend:  # Distributed cache backend over redis-py
    def __init__(self, client: RedisClient) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str, *, timeout_s: float = 1.0) -> "RedisBackend":
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=timeout_s,
            socket_timeout=timeout_s,
            retry_on_timeout=False,
        )
        return cls(client)

    def get(self, key: str) -> Optional[str]:
        value = self._client.get(key)
        if value is None:
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return str(value)

    def set_with_ttl(self, key: str, value: str, ttl: int) -> bool:
        return bool(self._client.setex(key, ttl, value))

    def delete(self, key: str) -> bool:
        return int(self._client.delete(key)) > 0

    def ping(self) -> bool:
        return bool(self._client.ping())

    def close(self) -> None:
        close = getattr(self._client, "close", None)
        if callable(close):
            close()


class FallbackStore:  # Prefers Redis; switches to the in-process map once and for good
    """Session store that degrades from Redis to an in-process map.

    Writes made while Redis is healthy are mirrored into the in-process map so
    sessions stay readable after a failure. The first Redis error flips the
    store into degraded mode for the rest of the process lifetime; Redis is
    never retried, so the active backend cannot oscillate.
    """

    def __init__(self, primary: Optional[RedisBackend], fallback: Optional[MemoryBackend] = None) -> None:
        self._primary = primary
        self._fallback = fallback or MemoryBackend()
        self._degraded = False
        self._switch_count = 0
        self._lock = threading.Lock()

    @property
    def active_backend(self) -> str:
        return REDIS_BACKEND if self._use_primary() else MEMORY_BACKEND

    @property
    def degraded(self) -> bool:
        return self._degraded

    @property
    def switch_count(self) -> int:
        return self._switch_count

    def get(self, key: str) -> Optional[str]:
        if self._use_primary():
            try:
                return self._primary.get(key)  # type: ignore[union-attr]
            except BACKEND_ERRORS as exc:
                self._switch(exc, "get")
        return self._fallback.get(key)

    def set_with_ttl(self, key: str, value: str, ttl: int) -> bool:
        if self._use_primary():
            try:
                self._primary.set_with_ttl(key, value, ttl)  # type: ignore[union-attr]
            except BACKEND_ERRORS as exc:
                self._switch(exc, "set")
        return self._fallback.set_with_ttl(key, value, ttl)

    def delete(self, key: str) -> bool:
        removed = False
        if self._use_primary():
            try:
                removed = self._primary.delete(key)  # type: ignore[union-attr]
            except BACKEND_ERRORS as exc:
                self._switch(exc, "delete")
        return self._fallback.delete(key) or removed

    def ping(self) -> bool:
        if self._use_primary():
            try:
                return self._primary.ping()  # type: ignore[union-attr]
            except BACKEND_ERRORS as exc:
                self._switch(exc, "ping")
        return self._fallback.ping()

    def _use_primary(self) -> bool:
        return self._primary is not None and not self._degraded

    def _switch(self, exc: BaseException, operation: str) -> None:  # One-directional failover
        with self._lock:
            if self._degraded:
                return
            self._degraded = True
            self._switch_count += 1
        logger.warning("Redis %s failed, switching to in-memory session store: %s", operation, exc)
        log_event(
            "store_degraded",
            None,
            level=logging.WARNING,
            backend=MEMORY_BACKEND,
            outcome=operation,
            error=str(exc),
        )
        try:
            self._primary.close()  # type: ignore[union-attr]
        except BACKEND_ERRORS as close_exc:
            logger.debug("Ignoring Redis close failure: %s", close_exc)


def build_store(settings: Settings, *, redis_client: Optional[RedisClient] = None) -> FallbackStore:  # Assemble store from settings
    if settings.SESSION_STORE == MEMORY_BACKEND:
        logger.info("Using in-memory session store")
        return FallbackStore(primary=None)
    if redis_client is not None:
        primary = RedisBackend(redis_client)
    else:
        primary = RedisBackend.from_url(settings.REDIS_URL, timeout_s=settings.REDIS_CONNECT_TIMEOUT_S)
    return FallbackStore(primary=primary)


__all__ = [
    "BACKEND_ERRORS",
    "FallbackStore",
    "MEMORY_BACKEND",
    "MemoryBackend",
    "REDIS_BACKEND",
    "RedisBackend",
    "RedisClient",
    "SessionStore",
    "build_store",
]
