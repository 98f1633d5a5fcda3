import time
import asyncio
import httpx
from typing import Optional

from edutrack.configs.logging_config import get_logger
from edutrack.errors import UpstreamUnavailableError

log = get_logger(__name__)


class OAuth2TokenProvider:
    """Client-credentials token for calling the identity provider, refreshed before expiry."""

    def __init__(
        self,
        token_url: str,
        client_id: str,
        client_secret: str,
        scope: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.scope = scope
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient()

        self._lock = asyncio.Lock()
        self._access_token: Optional[str] = None
        self._expires_at = 0.0

    def _valid(self) -> bool:
        return bool(self._access_token) and time.time() < self._expires_at

    async def get_token(self) -> str:
        if self._valid():
            return self._access_token

        async with self._lock:
            # another waiter may have refreshed while we queued
            if self._valid():
                return self._access_token

            await self._fetch_token()
            return self._access_token

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def invalidate(self) -> None:
        self._access_token = None
        self._expires_at = 0.0

    async def _fetch_token(self) -> None:
        data = {"grant_type": "client_credentials"}
        if self.scope:
            data["scope"] = self.scope

        try:
            resp = await self._client.post(
                self.token_url,
                data=data,
                auth=(self.client_id, self.client_secret),
            )
            resp.raise_for_status()
            payload = resp.json()
            self._access_token = payload["access_token"]
        except (httpx.HTTPError, ValueError, KeyError) as exc:
            log.error("oauth2.token_fetch_failed url=%s error=%s", self.token_url, exc)
            raise UpstreamUnavailableError("identity provider unavailable") from exc

        expires_in = payload.get("expires_in", 300)
        # refresh slightly early
        self._expires_at = time.time() + expires_in - 30
        log.info("oauth2.token_fetched expires_in=%s", expires_in)
