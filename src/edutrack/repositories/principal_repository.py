from __future__ import annotations

from abc import ABC, abstractmethod

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from edutrack.auth.models import Principal, Tenant
from edutrack.configs.logging_config import get_logger
from edutrack.errors import UpstreamUnavailableError
from edutrack.repositories.mongo import as_object_id

log = get_logger(__name__)


class PrincipalStore(ABC):
    """Read-only view of the locally stored users and schools."""

    @abstractmethod
    async def get_by_external_ref(self, external_ref: str) -> Principal | None: ...

    @abstractmethod
    async def get_tenant(self, tenant_id: str) -> Tenant | None: ...


class PrincipalRepository(PrincipalStore):
    def __init__(self, db: AsyncIOMotorDatabase):
        self._db = db
        self._users = db["users"]
        self._schools = db["schools"]

    async def ensure_indexes(self) -> None:
        log.info("repo.principal.ensure_indexes start")
        await self._schools.create_index("external_org_ref", unique=True)
        await self._users.create_index("external_ref", unique=True)
        await self._users.create_index([("school_id", 1), ("role", 1), ("is_active", 1)])
        log.info("repo.principal.ensure_indexes done")

    async def get_by_external_ref(self, external_ref: str) -> Principal | None:
        try:
            user = await self._users.find_one(
                {"external_ref": external_ref},
                projection={"role": 1, "school_id": 1, "is_active": 1},
            )
            if not user:
                log.info("repo.principal.not_found")
                return None
            school_id = user.get("school_id")
            if not school_id:
                log.warning("repo.principal.no_school user_id=%s", user["_id"])
                return None
            tenant = await self.get_tenant(str(school_id))
        except PyMongoError as exc:
            log.error("repo.principal.lookup_failed error=%s", exc)
            raise UpstreamUnavailableError("principal store unavailable") from exc

        if tenant is None:
            log.warning("repo.principal.dangling_school user_id=%s school_id=%s", user["_id"], school_id)
            return None
        return Principal(
            id=str(user["_id"]),
            external_ref=external_ref,
            role=str(user.get("role") or ""),
            tenant_id=tenant.id,
            active=user.get("is_active", True) is True,
        )

    async def get_tenant(self, tenant_id: str) -> Tenant | None:
        try:
            doc = await self._schools.find_one(
                {"_id": as_object_id(tenant_id)},
                projection={"external_org_ref": 1, "name": 1},
            )
        except PyMongoError as exc:
            log.error("repo.tenant.lookup_failed tenant_id=%s error=%s", tenant_id, exc)
            raise UpstreamUnavailableError("principal store unavailable") from exc
        if not doc:
            return None
        return Tenant(
            id=str(doc["_id"]),
            external_org_ref=str(doc.get("external_org_ref") or ""),
            name=str(doc.get("name") or ""),
        )
