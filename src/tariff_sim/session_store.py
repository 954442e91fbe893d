"""
Shared session store: whole-attribute get / replace per session id.

Every session holds three opaque attributes, each a JSON list of plain
dicts:

  CALCULATION_HISTORY   – the calculation-history ledger (newest first)
  EXPORT_CART           – the export cart
  SESSION_USER_TARIFFS  – simulator-mode rate overrides

The store only replicates on attribute replacement, so every mutation is a
full read → modify → write of one attribute.  There is no locking, version
counter or compare-and-swap: two concurrent writers on the same session id
resolve as last-writer-wins on the whole attribute.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import dataclass
from typing import Any

import redis

from .errors import DataAccessError

logger = logging.getLogger(__name__)

HISTORY_ATTR = "CALCULATION_HISTORY"
CART_ATTR = "EXPORT_CART"
OVERRIDES_ATTR = "SESSION_USER_TARIFFS"

DEFAULT_KEY_PREFIX = "spring:session:sessions:"


@dataclass
class SessionState:
    """Aggregate view of one session. ``None`` means the attribute is absent."""

    history: list[dict] | None = None
    cart: list[dict] | None = None
    overrides: list[dict] | None = None


_STATE_FIELDS = {
    HISTORY_ATTR: "history",
    CART_ATTR: "cart",
    OVERRIDES_ATTR: "overrides",
}


class SessionStore:
    """Base class: subclasses implement ``read`` / ``write`` / ``drop``."""

    def read(self, session_id: str, name: str) -> list[dict] | None:
        raise NotImplementedError

    def write(self, session_id: str, name: str, value: list[dict]) -> None:
        raise NotImplementedError

    def drop(self, session_id: str, name: str) -> None:
        raise NotImplementedError

    def get(self, session_id: str) -> SessionState:
        state = SessionState()
        for name, attr in _STATE_FIELDS.items():
            setattr(state, attr, self.read(session_id, name))
        return state

    def put(self, session_id: str, state: SessionState) -> None:
        for name, attr in _STATE_FIELDS.items():
            value = getattr(state, attr)
            if value is None:
                self.drop(session_id, name)
            else:
                self.write(session_id, name, value)


def _encode(value: list[dict]) -> str:
    return json.dumps(value, default=str)


def _decode(raw: Any) -> list[dict] | None:
    if raw is None:
        return None
    data = json.loads(raw)
    return data if isinstance(data, list) else None


# ── Redis ─────────────────────────────────────────────────────────────────────

class RedisSessionStore(SessionStore):
    """One Redis hash per session, one ``sessionAttr:<NAME>`` field per attribute."""

    def __init__(
        self,
        client: Any,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        ttl_seconds: int | None = None,
    ) -> None:
        self._client = client
        self.key_prefix = key_prefix
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_url(cls, url: str | None = None, **kwargs: Any) -> "RedisSessionStore":
        url = url or os.getenv("REDIS_URL", "redis://localhost:6379/0")
        client = redis.from_url(
            url,
            decode_responses=True,
            socket_keepalive=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
        return cls(client, **kwargs)

    def _key(self, session_id: str) -> str:
        return f"{self.key_prefix}{session_id}"

    @staticmethod
    def _field(name: str) -> str:
        return f"sessionAttr:{name}"

    def read(self, session_id: str, name: str) -> list[dict] | None:
        try:
            raw = self._client.hget(self._key(session_id), self._field(name))
        except redis.exceptions.RedisError as exc:
            raise DataAccessError(f"Failed to read session attribute {name}", exc) from exc
        try:
            return _decode(raw)
        except json.JSONDecodeError:
            logger.warning("Session %s attribute %s is not valid JSON; treating as absent",
                           session_id, name)
            return None

    def write(self, session_id: str, name: str, value: list[dict]) -> None:
        key = self._key(session_id)
        try:
            self._client.hset(key, self._field(name), _encode(value))
            if self.ttl_seconds:
                self._client.expire(key, self.ttl_seconds)
        except redis.exceptions.RedisError as exc:
            raise DataAccessError(f"Failed to write session attribute {name}", exc) from exc

    def drop(self, session_id: str, name: str) -> None:
        try:
            self._client.hdel(self._key(session_id), self._field(name))
        except redis.exceptions.RedisError as exc:
            raise DataAccessError(f"Failed to remove session attribute {name}", exc) from exc

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.exceptions.ConnectionError:
            return False


# ── In-memory ─────────────────────────────────────────────────────────────────

class MemorySessionStore(SessionStore):
    """
    Process-local store with the same replace-on-write semantics as Redis.

    Attributes are held serialised, so callers mutating a list they read never
    affect the stored value until they write it back.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: dict[str, dict[str, str]] = {}

    def read(self, session_id: str, name: str) -> list[dict] | None:
        with self._lock:
            raw = self._sessions.get(session_id, {}).get(name)
        return _decode(raw)

    def write(self, session_id: str, name: str, value: list[dict]) -> None:
        encoded = _encode(value)
        with self._lock:
            self._sessions.setdefault(session_id, {})[name] = encoded

    def drop(self, session_id: str, name: str) -> None:
        with self._lock:
            attrs = self._sessions.get(session_id)
            if attrs is not None:
                attrs.pop(name, None)

    def ping(self) -> bool:
        return True
