from __future__ import annotations

import asyncio
import fnmatch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from edutrack.auth.identity import IdentityProvider
from edutrack.auth.models import ExternalIdentity, Principal, Tenant
from edutrack.auth.session_resolver import SessionResolver
from edutrack.cache.response_cache import MemoryResponseCache
from edutrack.errors import AuthError, UpstreamUnavailableError
from edutrack.guard.request_guard import RequestGuard
from edutrack.repositories.principal_repository import PrincipalStore


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class FakeClock:
    def __init__(self, start: float = 1_000_000.0):
        self.t = start

    def __call__(self) -> float:
        return self.t

    def advance(self, seconds: float) -> None:
        self.t += seconds


class FakeIdentityProvider(IdentityProvider):
    """Tokens map straight to external refs; `down` simulates an unreachable provider."""

    def __init__(self, tokens: dict[str, str] | None = None):
        self.tokens = dict(tokens or {})
        self.down = False
        self.delay = 0.0
        self.calls = 0

    async def verify(self, credential: str) -> ExternalIdentity:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.down:
            raise UpstreamUnavailableError("identity provider unavailable")
        ref = self.tokens.get(credential)
        if ref is None:
            raise AuthError("invalid token")
        return ExternalIdentity(ref=ref)


class FakePrincipalStore(PrincipalStore):
    def __init__(self):
        self.principals: dict[str, Principal] = {}
        self.tenants: dict[str, Tenant] = {}

    def add(self, principal: Principal) -> Principal:
        self.principals[principal.external_ref] = principal
        self.tenants.setdefault(
            principal.tenant_id,
            Tenant(id=principal.tenant_id, external_org_ref=f"org-{principal.tenant_id}", name=f"School {principal.tenant_id}"),
        )
        return principal

    async def get_by_external_ref(self, external_ref: str) -> Principal | None:
        return self.principals.get(external_ref)

    async def get_tenant(self, tenant_id: str) -> Tenant | None:
        return self.tenants.get(tenant_id)


class FakeRedis:
    """The handful of redis.asyncio calls the response cache makes."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            raise RedisConnectionError("connection refused")

    async def get(self, key: str):
        self._check()
        return self.data.get(key)

    async def set(self, key: str, value: str, ex: int | None = None):
        self._check()
        self.data[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def delete(self, *keys: str) -> int:
        self._check()
        return sum(1 for k in keys if self.data.pop(k, None) is not None)

    async def scan_iter(self, match: str = "*"):
        self._check()
        for k in list(self.data):
            if fnmatch.fnmatchcase(k, match):
                yield k


class BrokenCache(MemoryResponseCache):
    """Every call fails the way an unreachable backend would."""

    async def get(self, key):
        raise RedisConnectionError("cache down")

    async def store(self, key, payload, tier):
        raise RedisConnectionError("cache down")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def idp() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def store() -> FakePrincipalStore:
    return FakePrincipalStore()


@pytest.fixture
def cache(clock) -> MemoryResponseCache:
    return MemoryResponseCache(clock=clock)


@pytest.fixture
def add_principal(idp, store):
    """Register a principal and return (token, principal)."""

    def _add(pid: str, role: str, tenant_id: str, active: bool = True) -> tuple[str, Principal]:
        principal = store.add(
            Principal(id=pid, external_ref=f"ext-{pid}", role=role, tenant_id=tenant_id, active=active)
        )
        token = f"tok-{pid}"
        idp.tokens[token] = principal.external_ref
        return token, principal

    return _add


@pytest.fixture
def guard(idp, store, cache) -> RequestGuard:
    return RequestGuard(
        SessionResolver(idp, store),
        cache,
        session_timeout=1.0,
        handler_timeout=1.0,
    )


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def broken_cache(clock) -> BrokenCache:
    return BrokenCache(clock=clock)


class FakeDashboardRepo:
    """Records which school each query was scoped to."""

    def __init__(self):
        self.schools: list[str] = []

    async def find(self, collection, school_id, query=None, **kwargs):
        self.schools.append(school_id)
        return [{"id": f"{collection}-1", "school_id": school_id, "name": "7A"}]

    async def count(self, collection, school_id, query=None):
        self.schools.append(school_id)
        return 3

    async def aggregate(self, collection, school_id, pipeline):
        self.schools.append(school_id)
        return []


@pytest.fixture
def dashboard_repo() -> FakeDashboardRepo:
    return FakeDashboardRepo()


class HangingRedis(FakeRedis):
    """Accepts the connection, never answers."""

    async def get(self, key: str):
        await asyncio.Event().wait()

    async def set(self, key: str, value: str, ex: int | None = None):
        await asyncio.Event().wait()


@pytest.fixture
def hanging_redis() -> HangingRedis:
    return HangingRedis()
