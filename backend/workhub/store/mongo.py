from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase

from workhub.store.base import ArrayAppend, DocumentNotFoundError, Increment
from workhub.utils import new_id

logger = logging.getLogger("store.mongo")


def _from_mongo(doc: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    if doc is None:
        return None
    out = dict(doc)
    out["id"] = str(out.pop("_id"))
    return out


def _to_mongo(data: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if k not in ("id", "_id")}


def build_update(data: Mapping[str, Any]) -> dict[str, Any]:
    """Translate a partial update into Mongo operators.

    Plain values go to $set, `Increment` to $inc and `ArrayAppend` to
    $push/$each, so counters and logs are updated server-side.
    """

    ops: dict[str, dict[str, Any]] = {}
    for key, value in _to_mongo(data).items():
        if isinstance(value, Increment):
            ops.setdefault("$inc", {})[key] = value.delta
        elif isinstance(value, ArrayAppend):
            ops.setdefault("$push", {})[key] = {"$each": value.values}
        else:
            ops.setdefault("$set", {})[key] = value
    return ops


class MongoDocumentStore:
    def __init__(self, client: AsyncIOMotorClient, db_name: str) -> None:
        self._client = client
        self._db: AsyncIOMotorDatabase = client[db_name]

    @classmethod
    def from_url(cls, mongo_url: str, db_name: str) -> "MongoDocumentStore":
        return cls(AsyncIOMotorClient(mongo_url, tz_aware=True), db_name)

    def _col(self, collection: str) -> AsyncIOMotorCollection:
        return self._db[collection]

    async def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        return _from_mongo(await self._col(collection).find_one({"_id": doc_id}))

    async def query(
        self, collection: str, filters: Optional[Mapping[str, Any]] = None
    ) -> list[dict[str, Any]]:
        cursor = self._col(collection).find(dict(filters or {}))
        docs = await cursor.to_list(length=None)
        return [_from_mongo(d) for d in docs]

    async def add(self, collection: str, data: Mapping[str, Any]) -> str:
        doc_id = new_id()
        await self._col(collection).insert_one({"_id": doc_id, **_to_mongo(data)})
        return doc_id

    async def set(
        self, collection: str, doc_id: str, data: Mapping[str, Any], *, merge: bool = False
    ) -> None:
        if merge:
            await self._col(collection).update_one(
                {"_id": doc_id}, {"$set": _to_mongo(data)}, upsert=True
            )
        else:
            await self._col(collection).replace_one(
                {"_id": doc_id}, _to_mongo(data), upsert=True
            )

    async def update(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        ops = build_update(data)
        if not ops:
            return
        res = await self._col(collection).update_one({"_id": doc_id}, ops)
        if res.matched_count == 0:
            raise DocumentNotFoundError(collection, doc_id)

    async def delete(self, collection: str, doc_id: str) -> None:
        await self._col(collection).delete_one({"_id": doc_id})

    async def ping(self) -> bool:
        try:
            await self._db.command("ping")
            return True
        except Exception as e:
            logger.warning("Mongo ping failed: %s", e)
            return False

    async def close(self) -> None:
        self._client.close()
