from __future__ import annotations  # Re-export session_store public API

from .store import (
    BACKEND_ERRORS,
    MEMORY_BACKEND,
    REDIS_BACKEND,
    FallbackStore,
    MemoryBackend,
    RedisBackend,
    RedisClient,
    SessionStore,
    build_store,
)

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
