from __future__ import annotations

import logging

from fastapi import Request

from workhub.config import Settings
from workhub.store.base import DocumentStore
from workhub.store.memory import InMemoryDocumentStore
from workhub.store.mongo import MongoDocumentStore

logger = logging.getLogger("db")


def build_store(settings: Settings) -> DocumentStore:
    if settings.store_backend == "memory":
        logger.warning("Using in-memory document store; data is lost on restart")
        return InMemoryDocumentStore()
    if settings.store_backend != "mongo":
        raise RuntimeError(f"Unknown STORE_BACKEND {settings.store_backend!r}")
    return MongoDocumentStore.from_url(settings.mongo_url, settings.db_name)


async def get_store(request: Request) -> DocumentStore:
    store = getattr(request.app.state, "store", None)
    assert store is not None, "document store is not connected"
    return store
