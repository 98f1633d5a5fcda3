from __future__ import annotations

from abc import ABC, abstractmethod

import httpx

from edutrack.auth.jwt import decode_token
from edutrack.auth.models import ExternalIdentity
from edutrack.configs.logging_config import get_logger
from edutrack.configs.settings import Settings
from edutrack.errors import AuthError, UpstreamUnavailableError
from edutrack.webclient.OAuth2HttpClient import OAuth2HttpClient

log = get_logger(__name__)


class IdentityProvider(ABC):
    """
    Verifies an opaque session credential with the external identity provider.

    Raises AuthError when the credential is not (or no longer) valid and
    UpstreamUnavailableError when the provider cannot be reached.
    """

    @abstractmethod
    async def verify(self, credential: str) -> ExternalIdentity: ...


class JwtIdentityProvider(IdentityProvider):
    def __init__(self, settings: Settings):
        self._settings = settings

    async def verify(self, credential: str) -> ExternalIdentity:
        claims = decode_token(credential, self._settings)
        return ExternalIdentity(ref=str(claims["sub"]), claims=claims)


class IntrospectionIdentityProvider(IdentityProvider):
    """RFC 7662 token introspection; asks the provider on every call so revocation is immediate."""

    def __init__(self, http: OAuth2HttpClient, introspection_url: str):
        self._http = http
        self._url = introspection_url

    async def verify(self, credential: str) -> ExternalIdentity:
        try:
            resp = await self._http.post(
                self._url,
                data={"token": credential, "token_type_hint": "access_token"},
            )
        except httpx.HTTPError as exc:
            log.error("idp.introspect.transport_error error=%s", exc)
            raise UpstreamUnavailableError("identity provider unavailable") from exc

        if resp.status_code != 200:
            log.error("idp.introspect.bad_status status=%s", resp.status_code)
            raise UpstreamUnavailableError("identity provider unavailable")

        try:
            body = resp.json()
        except ValueError as exc:
            log.error("idp.introspect.bad_body")
            raise UpstreamUnavailableError("identity provider unavailable") from exc

        if not isinstance(body, dict) or body.get("active") is not True:
            log.info("idp.introspect.inactive")
            raise AuthError("session expired or revoked")
        sub = body.get("sub")
        if not sub:
            log.info("idp.introspect.missing_sub")
            raise AuthError("token missing required claims")
        return ExternalIdentity(ref=str(sub), claims=body)


def build_identity_provider(settings: Settings, http: OAuth2HttpClient | None = None) -> IdentityProvider:
    if settings.identity_provider == "introspection":
        if http is None:
            raise ValueError("identity_provider=introspection requires an OAuth2HttpClient")
        log.info("idp.mode introspection url=%s", settings.introspection_url)
        return IntrospectionIdentityProvider(http, settings.introspection_url)
    log.info("idp.mode jwt alg=%s", settings.jwt_alg)
    return JwtIdentityProvider(settings)
