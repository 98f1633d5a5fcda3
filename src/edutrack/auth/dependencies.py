from __future__ import annotations

from fastapi import Header, Request

from edutrack.auth.models import Principal
from edutrack.auth.rate_limit import RateLimiter, client_identifier
from edutrack.authz.advisory import AdvisoryEvaluator
from edutrack.errors import AuthError, RateLimitError
from edutrack.guard.request_guard import RequestGuard
from edutrack.configs.logging_config import get_logger

log = get_logger(__name__)


def _bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise AuthError("missing authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        log.info("auth.malformed_authorization_header scheme=%s", scheme or "-")
        raise AuthError("invalid authorization header")
    return token.strip()


async def get_credential(authorization: str | None = Header(default=None)) -> str:
    return _bearer_token(authorization)


def get_guard(request: Request) -> RequestGuard:
    return request.app.state.guard


def get_advisory(request: Request) -> AdvisoryEvaluator:
    return request.app.state.advisory


async def enforce_rate_limit(request: Request) -> None:
    limiter: RateLimiter = request.app.state.rate_limiter
    peer = request.client.host if request.client else None
    ident = client_identifier(request.headers, peer)
    try:
        limiter.hit(ident)
    except RateLimitError:
        log.warning("ratelimit.exceeded path=%s", request.url.path)
        raise


async def get_optional_principal(
    request: Request,
    authorization: str | None = Header(default=None),
) -> Principal | None:
    """Principal for advisory lookups; None instead of 401 when not signed in."""
    guard: RequestGuard = request.app.state.guard
    settings = request.app.state.settings
    try:
        token = _bearer_token(authorization)
        return await guard.resolver.resolve(token, timeout=settings.session_timeout_seconds)
    except AuthError:
        return None
