from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from edutrack.configs.logging_config import get_logger
from edutrack.errors import UpstreamUnavailableError
from edutrack.repositories.mongo import id_match, oid_to_str
from edutrack.utils.time_utils import utc_now

log = get_logger(__name__)


class DashboardRepository:
    """
    Read-only queries behind the dashboard endpoints.

    Every query takes the school id as a required argument and applies it
    last, so no caller-supplied filter can widen a query past one school.
    Ids match whether stored as ObjectId or as their hex string.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self._db = db

    async def find(
        self,
        collection: str,
        school_id: str,
        query: dict[str, Any] | None = None,
        *,
        sort: list[tuple[str, int]] | None = None,
        limit: int = 50,
        projection: dict[str, int] | None = None,
    ) -> list[dict[str, Any]]:
        q = {**(query or {}), "school_id": id_match(school_id)}
        log.debug("repo.dashboard.find collection=%s school_id=%s keys=%s", collection, school_id, sorted(q))
        try:
            cursor = self._db[collection].find(q, projection=projection)
            if sort:
                cursor = cursor.sort(sort)
            docs = await cursor.limit(limit).to_list(length=limit)
        except PyMongoError as exc:
            log.error("repo.dashboard.find_failed collection=%s error=%s", collection, exc)
            raise UpstreamUnavailableError("data source unavailable") from exc
        return [oid_to_str(d) for d in docs]

    async def count(self, collection: str, school_id: str, query: dict[str, Any] | None = None) -> int:
        q = {**(query or {}), "school_id": id_match(school_id)}
        try:
            return await self._db[collection].count_documents(q)
        except PyMongoError as exc:
            log.error("repo.dashboard.count_failed collection=%s error=%s", collection, exc)
            raise UpstreamUnavailableError("data source unavailable") from exc

    async def aggregate(
        self, collection: str, school_id: str, pipeline: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        stages = [{"$match": {"school_id": id_match(school_id)}}, *pipeline]
        try:
            return await self._db[collection].aggregate(stages).to_list(length=None)
        except PyMongoError as exc:
            log.error("repo.dashboard.aggregate_failed collection=%s error=%s", collection, exc)
            raise UpstreamUnavailableError("data source unavailable") from exc


def days_ago(days: int) -> datetime:
    return utc_now() - timedelta(days=days)
