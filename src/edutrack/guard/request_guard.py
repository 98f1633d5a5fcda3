"""
Server-side request guard: the only place data is released.

    resolve session -> enforce -> cache lookup -> (miss) handler -> store

Authorization is fully resolved before any data-fetching work starts. A
failed resolution or a Deny raises before the cache or the handler is
touched. Cache backend failures are logged and absorbed; the request then
computes directly. The guard never consults the advisory evaluator.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

from edutrack.auth.models import Principal, parse_role
from edutrack.auth.session_resolver import SessionResolver
from edutrack.authz.enforce import enforce
from edutrack.cache.policy import CacheTier, cache_control, select_tier
from edutrack.cache.response_cache import CacheHit, CacheKey, ResponseCache
from edutrack.configs.logging_config import get_logger
from edutrack.errors import UpstreamUnavailableError
from edutrack.operations import OperationSpec

log = get_logger(__name__)


@dataclass(frozen=True)
class HandlerContext:
    principal: Principal
    # School the handler must filter by. Always the principal's own school.
    tenant_id: str


Handler = Callable[[HandlerContext], Awaitable[Any]]


class CacheStatus(str, Enum):
    HIT = "HIT"
    STALE = "STALE"
    MISS = "MISS"
    BYPASS = "BYPASS"  # cache backend failed; computed directly


@dataclass(frozen=True)
class GuardResult:
    payload: Any
    tier: CacheTier
    cache_status: CacheStatus
    principal: Principal
    age: float = 0.0

    @property
    def cache_control(self) -> str:
        return cache_control(self.tier)


class RequestGuard:
    def __init__(
        self,
        resolver: SessionResolver,
        cache: ResponseCache,
        *,
        session_timeout: float,
        handler_timeout: float,
        cache_timeout: float = 0.5,
    ):
        self._resolver = resolver
        self._cache = cache
        self._session_timeout = session_timeout
        self._handler_timeout = handler_timeout
        # A hung backend counts as a failed one.
        self._cache_timeout = cache_timeout
        self._refreshing: dict[CacheKey, asyncio.Task] = {}

    @property
    def resolver(self) -> SessionResolver:
        return self._resolver

    async def run(
        self,
        credential: str | None,
        operation: OperationSpec,
        handler: Handler,
        *,
        target_tenant_id: str | None = None,
        variant: str | None = None,
        timeout: float | None = None,
    ) -> GuardResult:
        principal = await self._resolver.resolve(
            credential, timeout=self._session_timeout if timeout is None else timeout
        )
        enforce(principal, operation.requirement, target_tenant_id, operation=operation.operation_id)

        tier = select_tier(operation.volatility)
        key = CacheKey(
            operation=operation.cache_operation(principal, variant),
            tenant_id=principal.tenant_id,
            role=parse_role(principal.role).value,
        )
        ctx = HandlerContext(principal=principal, tenant_id=principal.tenant_id)

        hit = await self._cache_get(key)
        if hit is not None:
            if hit.stale:
                self._schedule_refresh(key, tier, handler, ctx)
            status = CacheStatus.STALE if hit.stale else CacheStatus.HIT
            log.info(
                "guard.cache_%s operation=%s tenant_id=%s age_s=%.1f",
                status.value.lower(),
                operation.operation_id,
                principal.tenant_id,
                hit.age,
            )
            return GuardResult(hit.payload, tier, status, principal, hit.age)

        payload = await self._compute(handler, ctx, key)
        stored = await self._cache_store(key, payload, tier)
        return GuardResult(
            payload, tier, CacheStatus.MISS if stored else CacheStatus.BYPASS, principal
        )

    async def _compute(self, handler: Handler, ctx: HandlerContext, key: CacheKey) -> Any:
        # Cancellation propagates from here, so a cancelled request never reaches the store.
        try:
            return await asyncio.wait_for(handler(ctx), timeout=self._handler_timeout)
        except asyncio.TimeoutError as exc:
            log.warning(
                "guard.handler_timeout operation=%s timeout_s=%s", key.operation, self._handler_timeout
            )
            raise UpstreamUnavailableError("data source timed out") from exc

    async def _cache_get(self, key: CacheKey) -> CacheHit | None:
        try:
            return await asyncio.wait_for(self._cache.get(key), timeout=self._cache_timeout)
        except Exception as exc:
            log.warning("cache.backend_error op=get operation=%s error=%r", key.operation, exc)
            return None

    async def _cache_store(self, key: CacheKey, payload: Any, tier: CacheTier) -> bool:
        try:
            await asyncio.wait_for(self._cache.store(key, payload, tier), timeout=self._cache_timeout)
            return True
        except Exception as exc:
            log.warning("cache.backend_error op=store operation=%s error=%r", key.operation, exc)
            return False

    def _schedule_refresh(
        self, key: CacheKey, tier: CacheTier, handler: Handler, ctx: HandlerContext
    ) -> None:
        if key in self._refreshing:
            return
        task = asyncio.create_task(self._refresh(key, tier, handler, ctx))
        self._refreshing[key] = task
        task.add_done_callback(lambda _t: self._refreshing.pop(key, None))

    async def _refresh(
        self, key: CacheKey, tier: CacheTier, handler: Handler, ctx: HandlerContext
    ) -> None:
        # Best effort: on failure the stale entry stays until it ages out.
        try:
            payload = await self._compute(handler, ctx, key)
        except Exception as exc:
            log.warning("guard.refresh_failed operation=%s error=%s", key.operation, exc)
            return
        if await self._cache_store(key, payload, tier):
            log.info("guard.refreshed operation=%s tenant_id=%s", key.operation, key.tenant_id)

    def pending_refreshes(self) -> list[asyncio.Task]:
        return list(self._refreshing.values())

    async def aclose(self) -> None:
        tasks = self.pending_refreshes()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._refreshing.clear()
