from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from workhub.access_control import ensure_company_access
from workhub.errors import NotFoundError
from workhub.schemas import Identity, Role, parse_document
from workhub.schemas_email import Campaign, CampaignCreateIn, CampaignStatus, CampaignUpdateIn
from workhub.store.base import CAMPAIGNS, DocumentStore
from workhub.utils import now_utc

logger = logging.getLogger("campaigns")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _owning_company(identity: Identity, requested: Optional[str]) -> Optional[str]:
    # Super admins may create global (company-less) documents or pick a company.
    if identity.role is Role.SUPER_ADMIN:
        return requested
    return identity.company_id


class CampaignService:
    def __init__(self, store: DocumentStore, *, clock: Callable[[], datetime] = now_utc) -> None:
        self.store = store
        self._clock = clock

    async def _load(self, campaign_id: str) -> Campaign:
        doc = await self.store.get(CAMPAIGNS, campaign_id)
        if doc is None:
            raise NotFoundError("Campaign not found", {"campaign_id": campaign_id})
        return parse_document(Campaign, doc, CAMPAIGNS)

    async def list_campaigns(self, identity: Identity) -> List[Campaign]:
        filters: Dict[str, Any] = {}
        if identity.role is not Role.SUPER_ADMIN:
            filters["company_id"] = identity.company_id
        docs = await self.store.query(CAMPAIGNS, filters)
        campaigns = [parse_document(Campaign, d, CAMPAIGNS) for d in docs]
        campaigns.sort(key=lambda c: c.created_at or _EPOCH, reverse=True)
        return campaigns

    async def create_campaign(self, identity: Identity, payload: CampaignCreateIn) -> Campaign:
        now = self._clock()
        data: Dict[str, Any] = {
            "company_id": _owning_company(identity, payload.company_id),
            "name": payload.name.strip(),
            "subject": payload.subject.strip(),
            "preheader": payload.preheader,
            "sender_name": payload.sender_name,
            "sender_email": payload.sender_email,
            "html_content": payload.html_content,
            "recipient_list_ids": payload.recipient_list_ids,
            "status": (CampaignStatus.SCHEDULED if payload.scheduled_at else CampaignStatus.DRAFT).value,
            "scheduled_at": payload.scheduled_at,
            "sent_at": None,
            "last_sent_at": None,
            "recipient_count": 0,
            "created_by": identity.uid,
            "created_at": now,
            "updated_at": now,
        }
        campaign_id = await self.store.add(CAMPAIGNS, data)
        logger.info("Campaign %s created by %s", campaign_id, identity.uid)
        return parse_document(Campaign, {**data, "id": campaign_id}, CAMPAIGNS)

    async def get_campaign(self, identity: Identity, campaign_id: str) -> Campaign:
        campaign = await self._load(campaign_id)
        ensure_company_access(identity, campaign.company_id)
        return campaign

    async def update_campaign(
        self, identity: Identity, campaign_id: str, payload: CampaignUpdateIn
    ) -> Campaign:
        await self.get_campaign(identity, campaign_id)

        changes = payload.model_dump(exclude_unset=True)
        if "status" in changes:
            if changes["status"] is None:
                del changes["status"]
            else:
                changes["status"] = CampaignStatus(changes["status"]).value
        elif changes.get("scheduled_at"):
            changes["status"] = CampaignStatus.SCHEDULED.value
        for key in ("name", "subject"):
            if key in changes and changes[key] is None:
                del changes[key]

        changes["updated_at"] = self._clock()
        await self.store.update(CAMPAIGNS, campaign_id, changes)
        return await self._load(campaign_id)

    async def delete_campaign(self, identity: Identity, campaign_id: str) -> None:
        await self.get_campaign(identity, campaign_id)
        await self.store.delete(CAMPAIGNS, campaign_id)
        logger.info("Campaign %s deleted by %s", campaign_id, identity.uid)

    async def duplicate_campaign(self, identity: Identity, campaign_id: str) -> Campaign:
        source = await self.get_campaign(identity, campaign_id)
        now = self._clock()
        data = source.model_dump(exclude={"id"})
        data.update(
            {
                "name": f"{source.name} (Copy)",
                "status": CampaignStatus.DRAFT.value,
                "sent_at": None,
                "last_sent_at": None,
                "recipient_count": 0,
                "created_by": identity.uid,
                "created_at": now,
                "updated_at": now,
            }
        )
        copy_id = await self.store.add(CAMPAIGNS, data)
        logger.info("Campaign %s duplicated as %s", campaign_id, copy_id)
        return parse_document(Campaign, {**data, "id": copy_id}, CAMPAIGNS)
