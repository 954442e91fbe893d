"""Tests for session_store.py"""

import json

import pytest
import redis

from tariff_sim.errors import DataAccessError
from tariff_sim.session_store import (
    CART_ATTR,
    HISTORY_ATTR,
    OVERRIDES_ATTR,
    MemorySessionStore,
    RedisSessionStore,
    SessionState,
)


class FakeRedis:
    """Just enough of the redis-py hash API for the session store."""

    def __init__(self, fail=False):
        self.hashes = {}
        self.ttls = {}
        self.fail = fail

    def _check(self):
        if self.fail:
            raise redis.exceptions.ConnectionError("connection refused")

    def hget(self, key, field):
        self._check()
        return self.hashes.get(key, {}).get(field)

    def hset(self, key, field, value):
        self._check()
        self.hashes.setdefault(key, {})[field] = value

    def hdel(self, key, field):
        self._check()
        self.hashes.get(key, {}).pop(field, None)

    def expire(self, key, seconds):
        self.ttls[key] = seconds

    def ping(self):
        self._check()
        return True


def test_memory_absent_attribute_is_none():
    store = MemorySessionStore()
    assert store.read("s1", HISTORY_ATTR) is None
    assert store.get("s1") == SessionState()


def test_memory_read_returns_a_copy():
    store = MemorySessionStore()
    store.write("s1", CART_ATTR, [{"id": "a"}])
    items = store.read("s1", CART_ATTR)
    items.append({"id": "b"})
    assert store.read("s1", CART_ATTR) == [{"id": "a"}]


def test_sessions_are_isolated():
    store = MemorySessionStore()
    store.write("s1", CART_ATTR, [{"id": "a"}])
    assert store.read("s2", CART_ATTR) is None


def test_last_writer_wins_on_whole_attribute():
    store = MemorySessionStore()
    store.write("s1", HISTORY_ATTR, [])
    first = store.read("s1", HISTORY_ATTR)
    second = store.read("s1", HISTORY_ATTR)
    first.append({"id": "from-first"})
    second.append({"id": "from-second"})
    store.write("s1", HISTORY_ATTR, first)
    store.write("s1", HISTORY_ATTR, second)
    assert store.read("s1", HISTORY_ATTR) == [{"id": "from-second"}]


def test_put_none_drops_attribute():
    store = MemorySessionStore()
    store.put("s1", SessionState(history=[{"id": "h"}], cart=[], overrides=None))
    state = store.get("s1")
    assert state.history == [{"id": "h"}]
    assert state.cart == []
    assert state.overrides is None
    store.put("s1", SessionState())
    assert store.get("s1") == SessionState()


def test_redis_uses_session_hash_layout():
    client = FakeRedis()
    store = RedisSessionStore(client, ttl_seconds=1800)
    store.write("abc", OVERRIDES_ATTR, [{"id": "o1"}])
    key = "spring:session:sessions:abc"
    assert json.loads(client.hashes[key]["sessionAttr:SESSION_USER_TARIFFS"]) == [{"id": "o1"}]
    assert client.ttls[key] == 1800
    assert store.read("abc", OVERRIDES_ATTR) == [{"id": "o1"}]
    store.drop("abc", OVERRIDES_ATTR)
    assert store.read("abc", OVERRIDES_ATTR) is None


def test_redis_invalid_json_is_treated_as_absent():
    client = FakeRedis()
    client.hashes["spring:session:sessions:abc"] = {"sessionAttr:EXPORT_CART": "not json"}
    assert RedisSessionStore(client).read("abc", CART_ATTR) is None


def test_redis_failure_becomes_data_access_error():
    store = RedisSessionStore(FakeRedis(fail=True))
    with pytest.raises(DataAccessError, match="connection refused"):
        store.read("abc", HISTORY_ATTR)
    with pytest.raises(DataAccessError):
        store.write("abc", HISTORY_ATTR, [])
    assert store.ping() is False
