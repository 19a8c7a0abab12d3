"""
Campaign fan-out.

One send resolves the audience, resets the campaign analytics and delivers a
separately tracked copy to every unique recipient. Deliveries run through a
semaphore-bounded pool; every task reports its outcome as a value so a
failing recipient never cancels its siblings.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Sequence

from workhub.access_control import ensure_company_access
from workhub.errors import InternalError, NotFoundError, ValidationError
from workhub.schemas import Identity, parse_document
from workhub.schemas_email import Campaign, CampaignStatus, Recipient, RecipientList
from workhub.services.email import MailMessage, MailTransport
from workhub.services.email_rendering import new_tracking_id, render_campaign_html, render_test_html
from workhub.services.retry import RetryPolicy
from workhub.store.base import CAMPAIGN_ANALYTICS, CAMPAIGNS, RECIPIENT_LISTS, DocumentStore, Increment
from workhub.utils import now_utc

logger = logging.getLogger("campaign_dispatch")


@dataclass(frozen=True)
class DeliveryResult:
    email: str
    tracking_id: str
    delivered: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class DispatchSummary:
    recipient_count: int
    delivered: int
    failed: int


def unique_recipients(lists: Iterable[RecipientList]) -> List[Recipient]:
    """Concatenate list members in order, keeping the first entry per email."""

    seen: set[str] = set()
    out: List[Recipient] = []
    for recipient_list in lists:
        for recipient in recipient_list.recipients:
            if recipient.email in seen:
                continue
            seen.add(recipient.email)
            out.append(recipient)
    return out


class CampaignDispatcher:
    def __init__(
        self,
        store: DocumentStore,
        transport: MailTransport,
        *,
        base_url: str,
        concurrency: int = 10,
        retry_policy: Optional[RetryPolicy] = None,
        default_sender_name: str = "WorkHub Marketing",
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self.store = store
        self.transport = transport
        self.base_url = base_url.rstrip("/")
        self.concurrency = max(1, concurrency)
        self.retry_policy = retry_policy or RetryPolicy()
        self.default_sender_name = default_sender_name
        self._clock = clock

    def _ensure_transport(self) -> None:
        if not self.transport.is_configured():
            logger.error("Mail transport credentials missing; refusing to send")
            raise ValidationError("Email transport is not configured. Check the AWS SES settings.")

    async def _load_campaign(self, campaign_id: str, identity: Optional[Identity]) -> Campaign:
        doc = await self.store.get(CAMPAIGNS, campaign_id)
        if doc is None:
            raise NotFoundError("Campaign not found", {"campaign_id": campaign_id})
        campaign = parse_document(Campaign, doc, CAMPAIGNS)
        if identity is not None:
            ensure_company_access(identity, campaign.company_id)
        return campaign

    async def _load_lists(self, list_ids: Sequence[str]) -> List[RecipientList]:
        lists: List[RecipientList] = []
        for list_id in list_ids:
            doc = await self.store.get(RECIPIENT_LISTS, list_id)
            if doc is None:
                logger.warning("Recipient list %s not found; skipping", list_id)
                continue
            lists.append(parse_document(RecipientList, doc, RECIPIENT_LISTS))
        return lists

    def _message(self, campaign: Campaign, to: str, subject: str, html: str, headers=None) -> MailMessage:
        return MailMessage(
            from_name=campaign.sender_name or self.default_sender_name,
            from_email=campaign.sender_email or self.transport.default_from_email or "",
            to=to,
            subject=subject,
            html=html,
            headers=headers or {},
        )

    async def send(
        self,
        campaign_id: str,
        list_ids: Optional[Sequence[str]] = None,
        audience_id: Optional[str] = None,
        *,
        identity: Optional[Identity] = None,
    ) -> DispatchSummary:
        self._ensure_transport()
        campaign = await self._load_campaign(campaign_id, identity)

        # An explicit list selection, even an empty one, wins over audience_id.
        if list_ids is not None:
            effective_ids = list(list_ids)
        else:
            effective_ids = [audience_id] if audience_id else []
        if not effective_ids:
            raise ValidationError("No recipient lists selected")

        recipients = unique_recipients(await self._load_lists(effective_ids))
        if not recipients:
            raise ValidationError("No recipients found in the selected lists")

        if campaign.status in (CampaignStatus.SENDING, CampaignStatus.SENT):
            logger.warning("Campaign %s is already %s; sending again", campaign_id, campaign.status.value)

        count = len(recipients)
        await self.store.update(
            CAMPAIGNS,
            campaign_id,
            {"status": CampaignStatus.SENDING.value, "sent_at": self._clock(), "recipient_count": count},
        )
        await self.store.set(
            CAMPAIGN_ANALYTICS,
            campaign_id,
            {
                "total_sent": count,
                "delivered": 0,
                "failed": 0,
                "opened": 0,
                "clicked": 0,
                "opens": [],
                "clicks": [],
            },
            merge=True,
        )
        logger.info("Sending campaign %s to %s recipients (concurrency=%s)", campaign_id, count, self.concurrency)

        semaphore = asyncio.Semaphore(self.concurrency)
        results = await asyncio.gather(*(self._deliver(semaphore, campaign, r) for r in recipients))

        delivered = sum(1 for r in results if r.delivered)
        summary = DispatchSummary(recipient_count=count, delivered=delivered, failed=count - delivered)

        try:
            await self.store.update(
                CAMPAIGNS,
                campaign_id,
                {"status": CampaignStatus.SENT.value, "last_sent_at": self._clock()},
            )
        except Exception as e:
            logger.exception("Campaign %s delivered but final status update failed", campaign_id)
            raise InternalError(
                "Campaign was delivered but its status could not be updated",
                {"campaign_id": campaign_id, "delivered": summary.delivered, "failed": summary.failed},
            ) from e

        logger.info(
            "Completed campaign %s: delivered=%s failed=%s", campaign_id, summary.delivered, summary.failed
        )
        return summary

    async def _deliver(
        self, semaphore: asyncio.Semaphore, campaign: Campaign, recipient: Recipient
    ) -> DeliveryResult:
        # Rendered only once a slot is free, so at most `concurrency` copies are held.
        async with semaphore:
            tracking_id = new_tracking_id()
            try:
                html = render_campaign_html(
                    campaign.html_content,
                    base_url=self.base_url,
                    campaign_id=campaign.id,
                    tracking_id=tracking_id,
                )
                message = self._message(
                    campaign,
                    recipient.email,
                    campaign.subject,
                    html,
                    {"X-Campaign-ID": campaign.id, "X-Tracking-ID": tracking_id},
                )
                await self.retry_policy.call(lambda: self.transport.send(message))
                result = DeliveryResult(recipient.email, tracking_id, delivered=True)
            except Exception as e:
                logger.warning("Failed to send campaign %s to %s: %s", campaign.id, recipient.email, e)
                result = DeliveryResult(recipient.email, tracking_id, delivered=False, error=str(e))

        counter = "delivered" if result.delivered else "failed"
        try:
            await self.store.update(CAMPAIGN_ANALYTICS, campaign.id, {counter: Increment(1)})
        except Exception:
            logger.exception("Could not count %s delivery for campaign %s", counter, campaign.id)
        return result

    async def send_test(
        self, campaign_id: str, test_email: Optional[str], *, identity: Optional[Identity] = None
    ) -> None:
        self._ensure_transport()
        if not test_email or not test_email.strip():
            raise ValidationError("Test email address is required")

        campaign = await self._load_campaign(campaign_id, identity)
        message = self._message(
            campaign,
            test_email.strip(),
            f"[TEST] {campaign.subject}",
            render_test_html(campaign.html_content, campaign.name),
        )
        try:
            await self.retry_policy.call(lambda: self.transport.send(message))
        except Exception as e:
            logger.error("Test send of campaign %s to %s failed: %s", campaign_id, test_email, e)
            raise InternalError("Failed to send test email", {"campaign_id": campaign_id}) from e
        logger.info("Test email for campaign %s sent to %s", campaign_id, test_email)
