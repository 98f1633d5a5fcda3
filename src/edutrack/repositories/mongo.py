from __future__ import annotations

from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from edutrack.configs.settings import Settings
from edutrack.configs.logging_config import get_logger

log = get_logger(__name__)


def get_mongo_client(settings: Settings, *, timeout_ms: int | None = None) -> AsyncIOMotorClient:
    log.info("mongo.client.create db=%s", settings.mongo_db)
    if timeout_ms is None:
        timeout_ms = int(settings.session_timeout_seconds * 1000)
    # Fail fast instead of waiting the driver's default 30s for a server.
    return AsyncIOMotorClient(settings.mongo_uri, serverSelectionTimeoutMS=timeout_ms)


def get_mongo_db(client: AsyncIOMotorClient, settings: Settings) -> AsyncIOMotorDatabase:
    log.info("mongo.db.select db=%s", settings.mongo_db)
    return client[settings.mongo_db]


def as_object_id(value: str) -> ObjectId | str:
    """Ids may be stored as ObjectId or as plain strings (seeded data)."""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return value


def oid_to_str(doc: dict[str, Any]) -> dict[str, Any]:
    out = dict(doc)
    if "_id" in out:
        out["id"] = str(out.pop("_id"))
    for k, v in list(out.items()):
        if isinstance(v, ObjectId):
            out[k] = str(v)
    return out


def id_match(value: str) -> Any:
    """Filter value matching an id stored either as ObjectId or as its string form."""
    oid = as_object_id(value)
    if isinstance(oid, ObjectId):
        return {"$in": [value, oid]}
    return value


def ids_match(values: list[str]) -> dict[str, Any]:
    """`$in` filter over ids in both storage forms; `oid_to_str` output feeds back in here."""
    forms: list[Any] = []
    for v in values:
        forms.append(v)
        oid = as_object_id(v)
        if isinstance(oid, ObjectId):
            forms.append(oid)
    return {"$in": forms}
