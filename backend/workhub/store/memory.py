"""
In-memory DocumentStore for local development and tests.

NOT FOR PRODUCTION USE - data is lost on restart.
"""

from __future__ import annotations

import asyncio
import copy
from typing import Any, Dict, Mapping, Optional

from workhub.store.base import ArrayAppend, DocumentNotFoundError, Increment
from workhub.utils import new_id


def _matches(doc: Mapping[str, Any], filters: Mapping[str, Any]) -> bool:
    # Equality only; a None filter value also matches a missing field, as Mongo does.
    return all(doc.get(k) == v for k, v in filters.items())


class InMemoryDocumentStore:
    """
    Dict-backed implementation of DocumentStore.

    Writes are serialized through one lock, so `Increment` and `ArrayAppend`
    behave atomically under concurrent coroutines. Reads and writes copy
    documents so callers never share mutable state with the store.
    """

    def __init__(self) -> None:
        self._collections: Dict[str, Dict[str, dict[str, Any]]] = {}
        self._lock = asyncio.Lock()

    def _col(self, collection: str) -> Dict[str, dict[str, Any]]:
        return self._collections.setdefault(collection, {})

    @staticmethod
    def _out(doc_id: str, doc: Mapping[str, Any]) -> dict[str, Any]:
        out = copy.deepcopy(dict(doc))
        out["id"] = doc_id
        return out

    @staticmethod
    def _clean(data: Mapping[str, Any]) -> dict[str, Any]:
        return copy.deepcopy({k: v for k, v in data.items() if k not in ("id", "_id")})

    async def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        doc = self._col(collection).get(doc_id)
        return None if doc is None else self._out(doc_id, doc)

    async def query(
        self, collection: str, filters: Optional[Mapping[str, Any]] = None
    ) -> list[dict[str, Any]]:
        filters = filters or {}
        return [
            self._out(doc_id, doc)
            for doc_id, doc in self._col(collection).items()
            if _matches(doc, filters)
        ]

    async def add(self, collection: str, data: Mapping[str, Any]) -> str:
        doc_id = new_id()
        async with self._lock:
            self._col(collection)[doc_id] = self._clean(data)
        return doc_id

    async def set(
        self, collection: str, doc_id: str, data: Mapping[str, Any], *, merge: bool = False
    ) -> None:
        async with self._lock:
            col = self._col(collection)
            if merge and doc_id in col:
                col[doc_id].update(self._clean(data))
            else:
                col[doc_id] = self._clean(data)

    async def update(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        async with self._lock:
            doc = self._col(collection).get(doc_id)
            if doc is None:
                raise DocumentNotFoundError(collection, doc_id)
            for key, value in data.items():
                if key in ("id", "_id"):
                    continue
                if isinstance(value, Increment):
                    doc[key] = (doc.get(key) or 0) + value.delta
                elif isinstance(value, ArrayAppend):
                    doc.setdefault(key, [])
                    doc[key].extend(copy.deepcopy(value.values))
                else:
                    doc[key] = copy.deepcopy(value)

    async def delete(self, collection: str, doc_id: str) -> None:
        async with self._lock:
            self._col(collection).pop(doc_id, None)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._collections.clear()
