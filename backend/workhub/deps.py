from __future__ import annotations

from fastapi import Depends, Request

from workhub.config import Settings
from workhub.db import get_store
from workhub.services.attendance import AttendanceService
from workhub.services.branches import BranchService
from workhub.services.campaign_dispatch import CampaignDispatcher
from workhub.services.campaign_tracking import CampaignTracker
from workhub.services.campaigns import CampaignService
from workhub.services.email import MailTransport
from workhub.services.marketing_customers import MarketingCustomerService
from workhub.services.recipient_lists import RecipientListService
from workhub.services.retry import RetryPolicy
from workhub.store.base import DocumentStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_mail_transport(request: Request) -> MailTransport:
    return request.app.state.mail_transport


def get_attendance_service(
    store: DocumentStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> AttendanceService:
    return AttendanceService(
        store,
        timezone=settings.attendance_timezone,
        default_radius_m=settings.default_location_radius_m,
    )


def get_branch_service(store: DocumentStore = Depends(get_store)) -> BranchService:
    return BranchService(store)


def get_campaign_service(store: DocumentStore = Depends(get_store)) -> CampaignService:
    return CampaignService(store)


def get_recipient_list_service(store: DocumentStore = Depends(get_store)) -> RecipientListService:
    return RecipientListService(store)


def get_marketing_customer_service(store: DocumentStore = Depends(get_store)) -> MarketingCustomerService:
    return MarketingCustomerService(store)


def get_campaign_tracker(store: DocumentStore = Depends(get_store)) -> CampaignTracker:
    return CampaignTracker(store)


def get_campaign_dispatcher(
    store: DocumentStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    transport: MailTransport = Depends(get_mail_transport),
) -> CampaignDispatcher:
    return CampaignDispatcher(
        store,
        transport,
        base_url=settings.public_base_url,
        concurrency=settings.campaign_send_concurrency,
        retry_policy=RetryPolicy(
            max_attempts=settings.mail_send_max_attempts,
            base_delay_seconds=settings.mail_retry_base_delay_seconds,
            max_delay_seconds=settings.mail_retry_max_delay_seconds,
        ),
        default_sender_name=settings.default_sender_name,
    )
