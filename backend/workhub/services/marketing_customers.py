from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List

from workhub.access_control import ensure_company_access
from workhub.errors import NotFoundError
from workhub.schemas import Identity, Role, parse_document
from workhub.schemas_email import MarketingCustomer, MarketingCustomerIn, MarketingCustomerUpdateIn
from workhub.store.base import MARKETING_CUSTOMERS, DocumentStore
from workhub.utils import now_utc

logger = logging.getLogger("marketing_customers")


class MarketingCustomerService:
    """Standalone marketing contacts, kept apart from platform users."""

    def __init__(self, store: DocumentStore, *, clock: Callable[[], datetime] = now_utc) -> None:
        self.store = store
        self._clock = clock

    async def _load(self, identity: Identity, customer_id: str) -> MarketingCustomer:
        doc = await self.store.get(MARKETING_CUSTOMERS, customer_id)
        if doc is None:
            raise NotFoundError("Customer not found", {"customer_id": customer_id})
        customer = parse_document(MarketingCustomer, doc, MARKETING_CUSTOMERS)
        ensure_company_access(identity, customer.company_id)
        return customer

    async def list_customers(self, identity: Identity) -> List[MarketingCustomer]:
        filters: Dict[str, Any] = {}
        if identity.role is not Role.SUPER_ADMIN:
            filters["company_id"] = identity.company_id
        docs = await self.store.query(MARKETING_CUSTOMERS, filters)
        customers = [parse_document(MarketingCustomer, d, MARKETING_CUSTOMERS) for d in docs]
        customers.sort(key=lambda c: c.email.lower())
        return customers

    async def create_customer(self, identity: Identity, payload: MarketingCustomerIn) -> MarketingCustomer:
        now = self._clock()
        company_id = payload.company_id if identity.role is Role.SUPER_ADMIN else identity.company_id
        data: Dict[str, Any] = {
            "company_id": company_id,
            "email": payload.email,
            "name": payload.name,
            "tags": payload.tags,
            "status": "active",
            "created_by": identity.uid,
            "created_at": now,
            "updated_at": now,
        }
        customer_id = await self.store.add(MARKETING_CUSTOMERS, data)
        logger.info("Marketing customer %s created by %s", customer_id, identity.uid)
        return parse_document(MarketingCustomer, {**data, "id": customer_id}, MARKETING_CUSTOMERS)

    async def update_customer(
        self, identity: Identity, customer_id: str, payload: MarketingCustomerUpdateIn
    ) -> MarketingCustomer:
        await self._load(identity, customer_id)
        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        changes["updated_at"] = self._clock()
        await self.store.update(MARKETING_CUSTOMERS, customer_id, changes)
        return await self._load(identity, customer_id)

    async def delete_customer(self, identity: Identity, customer_id: str) -> None:
        await self._load(identity, customer_id)
        await self.store.delete(MARKETING_CUSTOMERS, customer_id)
        logger.info("Marketing customer %s deleted by %s", customer_id, identity.uid)
