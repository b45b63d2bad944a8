from __future__ import annotations

from config.settings import Settings
from session_store import FallbackStore, MemoryBackend, RedisBackend, build_store
from tests.fakes import FakeRedis


class Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_memory_backend_expires_and_slides():
    clock = Clock()
    backend = MemoryBackend(clock=clock)
    backend.set_with_ttl("k", "v1", 10)
    clock.now += 9
    assert backend.get("k") == "v1"
    backend.set_with_ttl("k", "v2", 10)
    clock.now += 9
    assert backend.get("k") == "v2"
    clock.now += 2
    assert backend.get("k") is None


def test_memory_backend_delete_reports_presence():
    backend = MemoryBackend()
    backend.set_with_ttl("k", "v", 60)
    assert backend.delete("k") is True
    assert backend.delete("k") is False


def test_redis_backend_uses_setex_ttl():
    client = FakeRedis()
    backend = RedisBackend(client)
    assert backend.set_with_ttl("k", "v", 42)
    assert client.ttls["k"] == 42
    assert backend.get("k") == "v"


def test_fallback_store_prefers_redis_while_healthy():
    client = FakeRedis()
    store = FallbackStore(RedisBackend(client))
    store.set_with_ttl("k", "v", 60)
    assert store.get("k") == "v"
    assert store.active_backend == "redis"
    assert store.degraded is False
    assert client.data["k"] == "v"


def test_fallback_store_keeps_sessions_after_redis_failure():
    client = FakeRedis()
    store = FallbackStore(RedisBackend(client))
    store.set_with_ttl("a", '{"id": "a"}', 60)
    store.set_with_ttl("b", '{"id": "b"}', 60)

    client.fail = True
    assert store.get("a") == '{"id": "a"}'
    assert store.get("b") == '{"id": "b"}'
    assert store.active_backend == "memory"
    assert store.degraded is True
    assert store.switch_count == 1
    assert client.closed is True


def test_fallback_store_never_returns_to_redis():
    client = FakeRedis()
    store = FallbackStore(RedisBackend(client))
    client.fail = True
    store.set_with_ttl("k", "v", 60)
    calls_after_switch = client.calls

    client.fail = False
    store.set_with_ttl("k", "v2", 60)
    assert store.get("k") == "v2"
    assert store.delete("k") is True
    assert store.switch_count == 1
    assert client.calls == calls_after_switch
    assert "k" not in client.data


def test_fallback_store_replays_failed_write_on_memory():
    client = FakeRedis()
    store = FallbackStore(RedisBackend(client))
    client.fail = True
    assert store.set_with_ttl("k", "v", 60) is True
    assert store.get("k") == "v"


def test_ping_failure_switches_backend():
    client = FakeRedis()
    store = FallbackStore(RedisBackend(client))
    client.fail = True
    assert store.ping() is True
    assert store.degraded is True


def test_build_store_memory_mode_is_not_degraded():
    store = build_store(Settings(_env_file=None, SESSION_STORE="memory"))
    assert store.active_backend == "memory"
    assert store.degraded is False
    assert store.switch_count == 0


def test_build_store_wraps_injected_redis_client():
    client = FakeRedis()
    store = build_store(Settings(_env_file=None, SESSION_STORE="redis"), redis_client=client)
    store.set_with_ttl("k", "v", 5)
    assert store.active_backend == "redis"
    assert client.ttls["k"] == 5
