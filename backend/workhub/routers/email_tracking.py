"""Public tracking endpoints hit by mail clients; no identity is required."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import RedirectResponse

from workhub.config import EMAIL_MARKETING_PREFIX
from workhub.deps import get_campaign_tracker
from workhub.services.campaign_tracking import TRACKING_PIXEL, CampaignTracker
from workhub.store.base import DocumentNotFoundError

logger = logging.getLogger("email_tracking")

router = APIRouter(prefix=f"{EMAIL_MARKETING_PREFIX}/track", tags=["email_tracking"])

NO_CACHE_HEADERS = {"Cache-Control": "no-cache, no-store, must-revalidate"}


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


@router.get("/open/{campaign_id}/{tracking_id}")
async def track_open(
    campaign_id: str,
    tracking_id: str,
    request: Request,
    tracker: CampaignTracker = Depends(get_campaign_tracker),
) -> Response:
    try:
        await tracker.record_open(
            campaign_id, tracking_id, _client_ip(request), request.headers.get("user-agent")
        )
    except DocumentNotFoundError:
        logger.warning("Open for unknown campaign %s (tracking %s)", campaign_id, tracking_id)
    except Exception:
        # The pixel is always served; a lost open is only logged.
        logger.exception("Open tracking failed for campaign %s", campaign_id)

    return Response(content=TRACKING_PIXEL, media_type="image/gif", headers=NO_CACHE_HEADERS)


@router.get("/click/{campaign_id}/{tracking_id}")
async def track_click(
    campaign_id: str,
    tracking_id: str,
    request: Request,
    u: Optional[str] = Query(default=None),
    tracker: CampaignTracker = Depends(get_campaign_tracker),
) -> RedirectResponse:
    url = await tracker.record_click(
        campaign_id, tracking_id, u, _client_ip(request), request.headers.get("user-agent")
    )
    return RedirectResponse(url, status_code=302)
