from __future__ import annotations

import base64
import logging
from datetime import datetime
from typing import Callable, Optional

from workhub.errors import NotFoundError, TrackingError, ValidationError
from workhub.schemas import parse_document
from workhub.schemas_email import CampaignAnalytics, TrackingEvent
from workhub.services.email_rendering import decode_tracking_url
from workhub.store.base import CAMPAIGN_ANALYTICS, ArrayAppend, DocumentStore, Increment
from workhub.utils import now_utc

logger = logging.getLogger("email_tracking")

# 1x1 transparent GIF
TRACKING_PIXEL = base64.b64decode("R0lGODlhAQABAIAAAAAAAP///yH5BAEAAAAALAAAAAABAAEAAAIBRAA7")


class CampaignTracker:
    """Records opens and clicks against a campaign's analytics document."""

    def __init__(self, store: DocumentStore, *, clock: Callable[[], datetime] = now_utc) -> None:
        self.store = store
        self._clock = clock

    def _event(self, tracking_id: str, ip: Optional[str], user_agent: Optional[str], url: Optional[str] = None):
        event = TrackingEvent(
            tracking_id=tracking_id, timestamp=self._clock(), ip=ip, user_agent=user_agent, url=url
        )
        return event.model_dump(exclude_none=True)

    async def record_open(
        self, campaign_id: str, tracking_id: str, ip: Optional[str], user_agent: Optional[str]
    ) -> None:
        await self.store.update(
            CAMPAIGN_ANALYTICS,
            campaign_id,
            {"opened": Increment(1), "opens": ArrayAppend(self._event(tracking_id, ip, user_agent))},
        )

    async def record_click(
        self,
        campaign_id: str,
        tracking_id: str,
        encoded_url: Optional[str],
        ip: Optional[str],
        user_agent: Optional[str],
    ) -> str:
        """Count the click and return the decoded target URL."""

        if not encoded_url:
            raise ValidationError("Missing target URL")

        try:
            url = decode_tracking_url(encoded_url)
        except ValueError as e:
            logger.warning("Undecodable click target for campaign %s: %s", campaign_id, e)
            raise TrackingError() from e

        try:
            await self.store.update(
                CAMPAIGN_ANALYTICS,
                campaign_id,
                {"clicked": Increment(1), "clicks": ArrayAppend(self._event(tracking_id, ip, user_agent, url))},
            )
        except Exception as e:
            logger.exception("Click tracking failed for campaign %s", campaign_id)
            raise TrackingError() from e
        return url

    async def get_analytics(self, campaign_id: str) -> CampaignAnalytics:
        doc = await self.store.get(CAMPAIGN_ANALYTICS, campaign_id)
        if doc is None:
            raise NotFoundError("Analytics not found", {"campaign_id": campaign_id})
        return parse_document(CampaignAnalytics, doc, CAMPAIGN_ANALYTICS)
