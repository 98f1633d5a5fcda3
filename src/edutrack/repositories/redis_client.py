from urllib.parse import urlsplit

import redis.asyncio as redis

from edutrack.configs.settings import Settings
from edutrack.configs.logging_config import get_logger

log = get_logger(__name__)


def redacted_url(url: str) -> str:
    """scheme://host:port/db, without userinfo."""
    parts = urlsplit(url)
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    return f"{parts.scheme}://{host}{parts.path}"


class RedisClient:
    """
    Simple Redis client wrapper.

    Constructed once at startup and handed to whatever needs it; there is no
    module-level instance. Socket timeouts keep a stalled server from hanging
    callers.
    """

    def __init__(self, settings: Settings):
        self._url = settings.redis_url
        self._timeout = settings.cache_timeout_seconds
        self.client: redis.Redis | None = None

    async def connect(self) -> redis.Redis:
        try:
            log.info("redis.connect url=%s", redacted_url(self._url))
            self.client = redis.from_url(
                self._url,
                decode_responses=True,
                socket_timeout=self._timeout,
                socket_connect_timeout=self._timeout,
            )
            await self.client.ping()
            log.info("redis.connected")
        except Exception as e:
            log.error("redis.connect_failed error=%s", e)
            raise
        return self.client

    async def close(self) -> None:
        if self.client:
            await self.client.aclose()
            self.client = None
