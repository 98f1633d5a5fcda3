from __future__ import annotations

import asyncio

from edutrack.auth.identity import IdentityProvider
from edutrack.auth.models import Principal
from edutrack.configs.logging_config import get_logger
from edutrack.errors import AuthError, UpstreamUnavailableError
from edutrack.repositories.principal_repository import PrincipalStore

log = get_logger(__name__)


class SessionResolver:
    """
    Credential -> verified Principal.

    Every call goes to the provider and the store; nothing is remembered
    between requests, so a revoked session fails on the very next call.
    """

    def __init__(self, identity_provider: IdentityProvider, store: PrincipalStore):
        self._idp = identity_provider
        self._store = store

    async def resolve(self, credential: str | None, *, timeout: float) -> Principal:
        if not credential:
            log.info("session.missing_credential")
            raise AuthError("missing authorization header")
        try:
            return await asyncio.wait_for(self._resolve(credential), timeout=timeout)
        except asyncio.TimeoutError as exc:
            log.warning("session.timeout timeout_s=%s", timeout)
            raise UpstreamUnavailableError("session resolution timed out") from exc

    async def _resolve(self, credential: str) -> Principal:
        identity = await self._idp.verify(credential)
        principal = await self._store.get_by_external_ref(identity.ref)
        if principal is None:
            log.info("session.unknown_principal")
            raise AuthError("user not found")
        log.info(
            "session.principal principal_id=%s tenant_id=%s role=%s",
            principal.id,
            principal.tenant_id,
            principal.role,
        )
        return principal
