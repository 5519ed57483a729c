"""Redis adapters: the recipe listing cache and the server-side session store."""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional

import redis

from .errors import CacheError
from .storage import RecipeListCache, SessionStore

logger = logging.getLogger(__name__)

SESSION_PREFIX = "session:"


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    try:
        yield
    except redis.RedisError as exc:
        logger.error("Redis failed to %s: %s", action, exc)
        raise CacheError(f"error while trying to {action}") from exc


def connect(redis_url: str) -> redis.Redis:
    return redis.Redis.from_url(redis_url, decode_responses=True)


class RedisRecipeCache(RecipeListCache):
    """Holds the serialized recipe listing under a single key, without expiry."""

    def __init__(self, client: redis.Redis, *, key: str = "recipes") -> None:
        self._client = client
        self._key = key

    @classmethod
    def from_url(cls, redis_url: str, *, key: str = "recipes") -> "RedisRecipeCache":
        return cls(connect(redis_url), key=key)

    def load(self) -> Optional[str]:
        with _translate_errors("read the recipe cache"):
            return self._client.get(self._key)

    def store(self, snapshot: str) -> None:
        with _translate_errors("populate the recipe cache"):
            self._client.set(self._key, snapshot)

    def invalidate(self) -> None:
        with _translate_errors("invalidate the recipe cache"):
            self._client.delete(self._key)
        logger.debug("Invalidated cache key %s", self._key)


class RedisSessionStore(SessionStore):
    """Opaque session tokens stored as ``session:<token>`` with a matching TTL."""

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisSessionStore":
        return cls(connect(redis_url))

    def save(self, token: str, username: str, expires: datetime) -> None:
        ttl = max(1, int((expires - datetime.now(timezone.utc)).total_seconds()))
        payload = json.dumps({"username": username, "expires": expires.isoformat()})
        with _translate_errors("save the session"):
            self._client.set(SESSION_PREFIX + token, payload, ex=ttl)

    def lookup(self, token: str) -> Optional[tuple[str, datetime]]:
        with _translate_errors("read the session"):
            raw = self._client.get(SESSION_PREFIX + token)
        if raw is None:
            return None

        try:
            data = json.loads(raw)
            return data["username"], datetime.fromisoformat(data["expires"])
        except (ValueError, KeyError, TypeError):
            logger.warning("Discarding unreadable session entry")
            return None

    def revoke(self, token: str) -> None:
        with _translate_errors("revoke the session"):
            self._client.delete(SESSION_PREFIX + token)


__all__ = ["RedisRecipeCache", "RedisSessionStore", "connect"]
