"""
Response cache with tenant-safe keys and tier-governed expiry.

Keys are `(operation, tenant_id, role)`; there is no way to address an entry
by operation alone, so two schools (or two roles in one school) hitting the
same logical endpoint never see each other's payload.

Payloads are JSON-encoded before anything is written. An encoding failure
therefore writes nothing, and every reader decodes its own copy. A lookup
returns `CacheHit` or `None` (miss):

    age <= ttl                 fresh, serve as-is
    ttl < age <= ttl + stale   stale, serve and refresh in the background
    age > ttl + stale          miss
"""

from __future__ import annotations

import json
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, NamedTuple
from urllib.parse import quote

import redis.asyncio as redis
from fastapi.encoders import jsonable_encoder
from redis.exceptions import RedisError

from edutrack.cache.policy import CacheTier, tier_by_name
from edutrack.configs.logging_config import get_logger
from edutrack.configs.settings import Settings
from edutrack.errors import CacheBackendError
from edutrack.utils.time_utils import now_s

log = get_logger(__name__)


class CacheKey(NamedTuple):
    operation: str
    tenant_id: str
    role: str


@dataclass(frozen=True)
class CacheEntry:
    key: CacheKey
    payload: str
    stored_at: float
    tier: CacheTier


@dataclass(frozen=True)
class CacheHit:
    payload: Any
    age: float
    tier: CacheTier

    @property
    def stale(self) -> bool:
        return self.age > self.tier.ttl_seconds


def encode_payload(payload: Any) -> str:
    try:
        return json.dumps(jsonable_encoder(payload), separators=(",", ":"))
    except (TypeError, ValueError) as exc:
        raise CacheBackendError(f"payload not serializable: {exc}") from exc


class ResponseCache(ABC):
    def __init__(self, clock: Callable[[], float] = now_s):
        self._clock = clock

    @abstractmethod
    async def get(self, key: CacheKey) -> CacheHit | None: ...

    @abstractmethod
    async def store(self, key: CacheKey, payload: Any, tier: CacheTier) -> None: ...

    @abstractmethod
    async def invalidate(self, key: CacheKey) -> None: ...

    @abstractmethod
    async def clear(self) -> None: ...

    async def close(self) -> None:
        return None

    def _to_hit(self, payload_json: str, stored_at: float, tier: CacheTier) -> CacheHit | None:
        age = max(0.0, self._clock() - stored_at)
        if age > tier.max_age_seconds:
            return None
        return CacheHit(payload=json.loads(payload_json), age=age, tier=tier)


class MemoryResponseCache(ResponseCache):
    """
    Process-local backend.

    Entries are immutable and replaced whole under a lock, so a reader sees
    either the previous entry or the new one.
    """

    def __init__(self, clock: Callable[[], float] = now_s):
        super().__init__(clock)
        self._entries: dict[CacheKey, CacheEntry] = {}
        self._lock = threading.Lock()

    async def get(self, key: CacheKey) -> CacheHit | None:
        with self._lock:
            entry = self._entries.get(key)
        if entry is None:
            return None
        return self._to_hit(entry.payload, entry.stored_at, entry.tier)

    async def store(self, key: CacheKey, payload: Any, tier: CacheTier) -> None:
        entry = CacheEntry(key=key, payload=encode_payload(payload), stored_at=self._clock(), tier=tier)
        with self._lock:
            self._entries[key] = entry

    async def invalidate(self, key: CacheKey) -> None:
        with self._lock:
            self._entries.pop(key, None)

    async def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [
                k for k, e in self._entries.items() if now - e.stored_at > e.tier.max_age_seconds
            ]
            for k in expired:
                del self._entries[k]
        if expired:
            log.debug("cache.memory.purged count=%s", len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


class RedisResponseCache(ResponseCache):
    """
    Shared backend. Each store is a single `SET ... EX` carrying payload,
    timestamp and tier together, expiring at the end of the stale window.
    """

    def __init__(self, client: redis.Redis, prefix: str, clock: Callable[[], float] = now_s):
        super().__init__(clock)
        self._redis = client
        self._prefix = prefix

    def redis_key(self, key: CacheKey) -> str:
        # Percent-encode each part so distinct tuples never join to the same string.
        return ":".join([self._prefix, *(quote(str(part), safe="") for part in key)])

    async def get(self, key: CacheKey) -> CacheHit | None:
        try:
            raw = await self._redis.get(self.redis_key(key))
        except (RedisError, OSError) as exc:
            raise CacheBackendError(f"redis get failed: {exc}") from exc
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        try:
            doc = json.loads(raw)
            tier = tier_by_name(doc["tier"])
            return self._to_hit(doc["payload"], float(doc["stored_at"]), tier)
        except (ValueError, KeyError, TypeError):
            log.warning("cache.redis.unreadable_entry operation=%s", key.operation)
            return None

    async def store(self, key: CacheKey, payload: Any, tier: CacheTier) -> None:
        doc = json.dumps(
            {"payload": encode_payload(payload), "stored_at": self._clock(), "tier": tier.name}
        )
        try:
            await self._redis.set(self.redis_key(key), doc, ex=tier.max_age_seconds)
        except (RedisError, OSError) as exc:
            raise CacheBackendError(f"redis set failed: {exc}") from exc

    async def invalidate(self, key: CacheKey) -> None:
        try:
            await self._redis.delete(self.redis_key(key))
        except (RedisError, OSError) as exc:
            raise CacheBackendError(f"redis delete failed: {exc}") from exc

    async def clear(self) -> None:
        try:
            async for k in self._redis.scan_iter(match=f"{self._prefix}:*"):
                await self._redis.delete(k)
        except (RedisError, OSError) as exc:
            raise CacheBackendError(f"redis clear failed: {exc}") from exc


def build_response_cache(settings: Settings, redis_client: redis.Redis | None = None) -> ResponseCache:
    if settings.cache_backend == "redis":
        if redis_client is None:
            raise ValueError("cache_backend=redis requires a connected redis client")
        log.info("cache.backend redis prefix=%s", settings.cache_key_prefix)
        return RedisResponseCache(redis_client, settings.cache_key_prefix)
    log.info("cache.backend memory")
    return MemoryResponseCache()
