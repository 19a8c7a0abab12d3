from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends

from workhub.access_control import Capability
from workhub.auth import require_capability
from workhub.config import EMAIL_MARKETING_PREFIX
from workhub.deps import (
    get_campaign_dispatcher,
    get_campaign_service,
    get_campaign_tracker,
    get_marketing_customer_service,
    get_recipient_list_service,
)
from workhub.schemas import Identity
from workhub.schemas_email import (
    Campaign,
    CampaignAnalytics,
    CampaignCreateIn,
    CampaignSendIn,
    CampaignSendOut,
    CampaignTestIn,
    CampaignUpdateIn,
    MarketingCustomer,
    MarketingCustomerIn,
    MarketingCustomerUpdateIn,
    RecipientList,
    RecipientListIn,
    RecipientListUpdateIn,
    SystemUser,
)
from workhub.services.campaign_dispatch import CampaignDispatcher
from workhub.services.campaign_tracking import CampaignTracker
from workhub.services.campaigns import CampaignService
from workhub.services.marketing_customers import MarketingCustomerService
from workhub.services.recipient_lists import RecipientListService

router = APIRouter(prefix=EMAIL_MARKETING_PREFIX, tags=["email_marketing"])

AdminDep = require_capability(Capability.MANAGE_EMAIL_MARKETING)


# --- Campaigns ---


@router.post("/campaigns", response_model=Campaign, status_code=201)
async def create_campaign(
    payload: CampaignCreateIn,
    user: Identity = Depends(AdminDep),
    service: CampaignService = Depends(get_campaign_service),
) -> Campaign:
    return await service.create_campaign(user, payload)


@router.get("/campaigns", response_model=List[Campaign])
async def list_campaigns(
    user: Identity = Depends(AdminDep),
    service: CampaignService = Depends(get_campaign_service),
) -> List[Campaign]:
    return await service.list_campaigns(user)


@router.get("/campaigns/{campaign_id}", response_model=Campaign)
async def get_campaign(
    campaign_id: str,
    user: Identity = Depends(AdminDep),
    service: CampaignService = Depends(get_campaign_service),
) -> Campaign:
    return await service.get_campaign(user, campaign_id)


@router.put("/campaigns/{campaign_id}", response_model=Campaign)
async def update_campaign(
    campaign_id: str,
    payload: CampaignUpdateIn,
    user: Identity = Depends(AdminDep),
    service: CampaignService = Depends(get_campaign_service),
) -> Campaign:
    return await service.update_campaign(user, campaign_id, payload)


@router.delete("/campaigns/{campaign_id}")
async def delete_campaign(
    campaign_id: str,
    user: Identity = Depends(AdminDep),
    service: CampaignService = Depends(get_campaign_service),
) -> Dict[str, Any]:
    await service.delete_campaign(user, campaign_id)
    return {"ok": True, "id": campaign_id}


@router.post("/campaigns/{campaign_id}/duplicate", response_model=Campaign, status_code=201)
async def duplicate_campaign(
    campaign_id: str,
    user: Identity = Depends(AdminDep),
    service: CampaignService = Depends(get_campaign_service),
) -> Campaign:
    return await service.duplicate_campaign(user, campaign_id)


@router.post("/campaigns/{campaign_id}/send", response_model=CampaignSendOut)
async def send_campaign(
    campaign_id: str,
    payload: Optional[CampaignSendIn] = None,
    user: Identity = Depends(AdminDep),
    dispatcher: CampaignDispatcher = Depends(get_campaign_dispatcher),
) -> CampaignSendOut:
    payload = payload or CampaignSendIn()
    summary = await dispatcher.send(
        campaign_id, payload.list_ids, payload.audience_id, identity=user
    )
    return CampaignSendOut(
        message=f"Campaign sent to {summary.delivered} of {summary.recipient_count} recipients.",
        recipient_count=summary.recipient_count,
        delivered=summary.delivered,
        failed=summary.failed,
    )


@router.post("/campaigns/{campaign_id}/test")
async def send_test_email(
    campaign_id: str,
    payload: CampaignTestIn,
    user: Identity = Depends(AdminDep),
    dispatcher: CampaignDispatcher = Depends(get_campaign_dispatcher),
) -> Dict[str, Any]:
    await dispatcher.send_test(campaign_id, payload.test_email, identity=user)
    return {"message": "Test email sent successfully"}


@router.get("/campaigns/{campaign_id}/analytics", response_model=CampaignAnalytics)
async def campaign_analytics(
    campaign_id: str,
    user: Identity = Depends(AdminDep),
    service: CampaignService = Depends(get_campaign_service),
    tracker: CampaignTracker = Depends(get_campaign_tracker),
) -> CampaignAnalytics:
    await service.get_campaign(user, campaign_id)
    return await tracker.get_analytics(campaign_id)


# --- Recipient lists ---


@router.post("/lists", response_model=RecipientList, status_code=201)
async def create_list(
    payload: RecipientListIn,
    user: Identity = Depends(AdminDep),
    service: RecipientListService = Depends(get_recipient_list_service),
) -> RecipientList:
    return await service.create_list(user, payload)


@router.get("/lists", response_model=List[RecipientList])
async def list_lists(
    user: Identity = Depends(AdminDep),
    service: RecipientListService = Depends(get_recipient_list_service),
) -> List[RecipientList]:
    return await service.list_lists(user)


@router.put("/lists/{list_id}", response_model=RecipientList)
async def update_list(
    list_id: str,
    payload: RecipientListUpdateIn,
    user: Identity = Depends(AdminDep),
    service: RecipientListService = Depends(get_recipient_list_service),
) -> RecipientList:
    return await service.update_list(user, list_id, payload)


@router.delete("/lists/{list_id}")
async def delete_list(
    list_id: str,
    user: Identity = Depends(AdminDep),
    service: RecipientListService = Depends(get_recipient_list_service),
) -> Dict[str, Any]:
    await service.delete_list(user, list_id)
    return {"ok": True, "id": list_id}


@router.get("/system-users", response_model=List[SystemUser])
async def list_system_users(
    user: Identity = Depends(AdminDep),
    service: RecipientListService = Depends(get_recipient_list_service),
) -> List[SystemUser]:
    return await service.list_system_users(user)


# --- Marketing customers ---


@router.post("/customers", response_model=MarketingCustomer, status_code=201)
async def create_customer(
    payload: MarketingCustomerIn,
    user: Identity = Depends(AdminDep),
    service: MarketingCustomerService = Depends(get_marketing_customer_service),
) -> MarketingCustomer:
    return await service.create_customer(user, payload)


@router.get("/customers", response_model=List[MarketingCustomer])
async def list_customers(
    user: Identity = Depends(AdminDep),
    service: MarketingCustomerService = Depends(get_marketing_customer_service),
) -> List[MarketingCustomer]:
    return await service.list_customers(user)


@router.put("/customers/{customer_id}", response_model=MarketingCustomer)
async def update_customer(
    customer_id: str,
    payload: MarketingCustomerUpdateIn,
    user: Identity = Depends(AdminDep),
    service: MarketingCustomerService = Depends(get_marketing_customer_service),
) -> MarketingCustomer:
    return await service.update_customer(user, customer_id, payload)


@router.delete("/customers/{customer_id}")
async def delete_customer(
    customer_id: str,
    user: Identity = Depends(AdminDep),
    service: MarketingCustomerService = Depends(get_marketing_customer_service),
) -> Dict[str, Any]:
    await service.delete_customer(user, customer_id)
    return {"ok": True, "id": customer_id}
