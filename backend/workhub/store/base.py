from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol


ATTENDANCE = "attendance"
BRANCHES = "branches"
COMPANIES = "companies"
USERS = "users"
CAMPAIGNS = "email_campaigns"
RECIPIENT_LISTS = "email_lists"
CAMPAIGN_ANALYTICS = "campaign_analytics"
MARKETING_CUSTOMERS = "marketing_customers"


class DocumentNotFoundError(LookupError):
    def __init__(self, collection: str, doc_id: str) -> None:
        super().__init__(f"{collection}/{doc_id} does not exist")
        self.collection = collection
        self.doc_id = doc_id


@dataclass(frozen=True)
class Increment:
    """Atomic numeric increment of a single field."""

    delta: int | float = 1


class ArrayAppend:
    """Atomic append of one or more values to an array field."""

    __slots__ = ("values",)

    def __init__(self, *values: Any) -> None:
        self.values = list(values)

    def __repr__(self) -> str:
        return f"ArrayAppend({self.values!r})"


class DocumentStore(Protocol):
    """Document CRUD with atomic field operations.

    Documents come back as plain dicts carrying their id under "id".
    `update` accepts `Increment` and `ArrayAppend` values next to plain
    values; those are applied atomically by the backend, never as a
    read-modify-write on the client.
    """

    async def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        ...

    async def query(
        self, collection: str, filters: Optional[Mapping[str, Any]] = None
    ) -> list[dict[str, Any]]:
        ...

    async def add(self, collection: str, data: Mapping[str, Any]) -> str:
        ...

    async def set(
        self, collection: str, doc_id: str, data: Mapping[str, Any], *, merge: bool = False
    ) -> None:
        ...

    async def update(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        ...

    async def delete(self, collection: str, doc_id: str) -> None:
        ...

    async def ping(self) -> bool:
        ...

    async def close(self) -> None:
        ...
