from __future__ import annotations

import asyncio
import time
from typing import Any

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from edutrack.auth.identity import build_identity_provider
from edutrack.auth.rate_limit import RateLimiter
from edutrack.auth.session_resolver import SessionResolver
from edutrack.authz.advisory import AdvisoryEvaluator
from edutrack.cache.response_cache import MemoryResponseCache, build_response_cache
from edutrack.configs.logging_config import get_logger, setup_logging
from edutrack.configs.settings import Settings, get_settings
from edutrack.errors import AppError, ForbiddenError, RateLimitError
from edutrack.guard.request_guard import RequestGuard
from edutrack.repositories.dashboard_repository import DashboardRepository
from edutrack.repositories.mongo import get_mongo_client, get_mongo_db
from edutrack.repositories.principal_repository import PrincipalRepository
from edutrack.repositories.redis_client import RedisClient
from edutrack.routers.access_router import router as access_router
from edutrack.routers.dashboard_router import router as dashboard_router
from edutrack.routers.health_router import router as health_router
from edutrack.routers.school_router import router as school_router
from edutrack.utils.response import failure
from edutrack.webclient.OAuth2HttpClient import OAuth2HttpClient
from edutrack.webclient.OAuth2TokenProvider import OAuth2TokenProvider

log = get_logger(__name__)


def create_app(settings: Settings | None = None, *, state: dict[str, Any] | None = None) -> FastAPI:
    """
    Build the API.

    `state` pre-populates `app.state` (guard, advisory, rate_limiter,
    dashboard_repo, principal_store); when given, startup wires nothing
    external. Used by tests.
    """
    settings = settings or get_settings()
    app = FastAPI(title="edutrack", version="0.1.0")
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        start = time.perf_counter()
        method = request.method
        path = request.url.path
        request_id = request.headers.get("x-request-id") or request.headers.get("x-correlation-id")

        log.info("request.start method=%s path=%s request_id=%s", method, path, request_id)
        status_code: Any = "unknown"
        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            elapsed_ms = int((time.perf_counter() - start) * 1000)
            log.info(
                "request.end method=%s path=%s status=%s request_id=%s elapsed_ms=%s",
                method,
                path,
                status_code,
                request_id,
                elapsed_ms,
            )
        return response

    app.include_router(health_router)
    app.include_router(dashboard_router)
    app.include_router(school_router)
    app.include_router(access_router)

    @app.exception_handler(AppError)
    async def app_error_handler(_: Request, exc: AppError) -> JSONResponse:
        log.info("request.error type=app_error status=%s message=%s", exc.http_status, exc.message)
        headers: dict[str, str] = {}
        extra: dict[str, Any] = {}
        if isinstance(exc, ForbiddenError) and exc.reason:
            extra["reason"] = exc.reason
        if isinstance(exc, RateLimitError):
            headers = {
                "Retry-After": str(exc.retry_after),
                "X-RateLimit-Limit": str(exc.limit),
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": str(exc.reset_at),
            }
        return JSONResponse(
            status_code=exc.http_status, content=failure(exc.message, **extra), headers=headers
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(_: Request, exc: Exception) -> JSONResponse:
        log.exception("Unhandled error: %s", str(exc))
        return JSONResponse(status_code=500, content=failure("internal server error"))

    @app.on_event("startup")
    async def startup() -> None:
        setup_logging(settings.LOG_LEVEL)
        if state is not None:
            for name, value in state.items():
                setattr(app.state, name, value)
            log.info("startup.prebuilt_state keys=%s", sorted(state))
            return
        await _wire(app, settings)

    @app.on_event("shutdown")
    async def shutdown() -> None:
        log.info("shutdown.begin")
        purge = getattr(app.state, "purge_task", None)
        if purge is not None:
            purge.cancel()
        guard = getattr(app.state, "guard", None)
        if guard is not None:
            await guard.aclose()
        cache = getattr(app.state, "response_cache", None)
        if cache is not None:
            await cache.close()
        redis_client = getattr(app.state, "redis_client", None)
        if redis_client is not None:
            await redis_client.close()
        http_client = getattr(app.state, "http_client", None)
        if http_client is not None:
            await http_client.aclose()
        mongo_client = getattr(app.state, "mongo_client", None)
        if mongo_client is not None:
            mongo_client.close()
        log.info("shutdown.done")

    return app


async def _wire(app: FastAPI, settings: Settings) -> None:
    mongo_client = get_mongo_client(settings)
    mongo_db = get_mongo_db(mongo_client, settings)
    app.state.mongo_client = mongo_client

    principal_store = PrincipalRepository(mongo_db)
    if settings.mongo_ensure_indexes:
        await principal_store.ensure_indexes()
    else:
        log.info("startup.ensure_indexes skipped")
    app.state.principal_store = principal_store
    app.state.dashboard_repo = DashboardRepository(mongo_db)

    redis_conn = None
    if settings.cache_backend == "redis":
        redis_client = RedisClient(settings)
        redis_conn = await redis_client.connect()
        app.state.redis_client = redis_client
    cache = build_response_cache(settings, redis_conn)
    app.state.response_cache = cache

    http_client = None
    if settings.identity_provider == "introspection":
        # one pool for token fetches and introspection; closed by http_client.aclose()
        httpx_client = httpx.AsyncClient(timeout=settings.session_timeout_seconds)
        token_provider = OAuth2TokenProvider(
            token_url=settings.oauth2_token_url,
            client_id=settings.oauth2_client_id,
            client_secret=settings.oauth2_client_secret,
            scope=settings.oauth2_scope,
            client=httpx_client,
        )
        http_client = OAuth2HttpClient(token_provider=token_provider, client=httpx_client)
        app.state.http_client = http_client

    resolver = SessionResolver(build_identity_provider(settings, http_client), principal_store)
    app.state.guard = RequestGuard(
        resolver,
        cache,
        session_timeout=settings.session_timeout_seconds,
        handler_timeout=settings.handler_timeout_seconds,
        cache_timeout=settings.cache_timeout_seconds,
    )
    app.state.advisory = AdvisoryEvaluator()
    limiter = RateLimiter(settings.rate_limit_max_requests, settings.rate_limit_window_seconds)
    app.state.rate_limiter = limiter

    async def purge_worker() -> None:
        interval = settings.cache_purge_interval_seconds
        log.info("purge_worker.start interval_s=%s", interval)
        while True:
            await asyncio.sleep(interval)
            try:
                purged = cache.purge_expired() if isinstance(cache, MemoryResponseCache) else 0
                pruned = limiter.prune()
                log.debug("purge_worker.tick cache_entries=%s rate_windows=%s", purged, pruned)
            except Exception as exc:
                log.error("purge_worker.loop_error %s", str(exc), exc_info=True)

    app.state.purge_task = asyncio.create_task(purge_worker())
    log.info("startup.done cache=%s idp=%s", settings.cache_backend, settings.identity_provider)


app = create_app()
