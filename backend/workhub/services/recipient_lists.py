from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List

from workhub.access_control import ensure_company_access
from workhub.errors import NotFoundError
from workhub.schemas import Identity, Role, parse_document
from workhub.schemas_email import RecipientList, RecipientListIn, RecipientListUpdateIn, SystemUser
from workhub.store.base import RECIPIENT_LISTS, USERS, DocumentStore
from workhub.utils import now_utc

logger = logging.getLogger("recipient_lists")


class RecipientListService:
    def __init__(self, store: DocumentStore, *, clock: Callable[[], datetime] = now_utc) -> None:
        self.store = store
        self._clock = clock

    async def _load(self, identity: Identity, list_id: str) -> RecipientList:
        doc = await self.store.get(RECIPIENT_LISTS, list_id)
        if doc is None:
            raise NotFoundError("List not found", {"list_id": list_id})
        recipient_list = parse_document(RecipientList, doc, RECIPIENT_LISTS)
        ensure_company_access(identity, recipient_list.company_id)
        return recipient_list

    async def list_lists(self, identity: Identity) -> List[RecipientList]:
        filters: Dict[str, Any] = {}
        if identity.role is not Role.SUPER_ADMIN:
            filters["company_id"] = identity.company_id
        docs = await self.store.query(RECIPIENT_LISTS, filters)
        lists = [parse_document(RecipientList, d, RECIPIENT_LISTS) for d in docs]
        lists.sort(key=lambda rl: rl.name.lower())
        return lists

    async def create_list(self, identity: Identity, payload: RecipientListIn) -> RecipientList:
        now = self._clock()
        company_id = payload.company_id if identity.role is Role.SUPER_ADMIN else identity.company_id
        data: Dict[str, Any] = {
            "company_id": company_id,
            "name": payload.name.strip(),
            "description": payload.description,
            "recipients": [r.model_dump() for r in payload.recipients],
            "created_by": identity.uid,
            "created_at": now,
            "updated_at": now,
        }
        list_id = await self.store.add(RECIPIENT_LISTS, data)
        logger.info("Recipient list %s created with %s recipients", list_id, len(payload.recipients))
        return parse_document(RecipientList, {**data, "id": list_id}, RECIPIENT_LISTS)

    async def update_list(
        self, identity: Identity, list_id: str, payload: RecipientListUpdateIn
    ) -> RecipientList:
        await self._load(identity, list_id)
        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        changes["updated_at"] = self._clock()
        await self.store.update(RECIPIENT_LISTS, list_id, changes)
        return await self._load(identity, list_id)

    async def delete_list(self, identity: Identity, list_id: str) -> None:
        await self._load(identity, list_id)
        await self.store.delete(RECIPIENT_LISTS, list_id)
        logger.info("Recipient list %s deleted by %s", list_id, identity.uid)

    async def list_system_users(self, identity: Identity) -> List[SystemUser]:
        """Platform users that can be imported as recipients, tagged with their role."""

        filters: Dict[str, Any] = {}
        if identity.role is not Role.SUPER_ADMIN:
            filters["company_id"] = identity.company_id
        users: List[SystemUser] = []
        for doc in await self.store.query(USERS, filters):
            # Accounts without an address cannot receive campaigns.
            if not doc.get("email"):
                continue
            role = str(doc.get("role") or "user").strip().lower()
            users.append(
                SystemUser(id=doc["id"], email=doc["email"], name=doc.get("name") or "", role=role, tags=[role])
            )
        users.sort(key=lambda u: u.email.lower())
        return users
