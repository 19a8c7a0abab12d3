from __future__ import annotations

import asyncio
import re

import httpx
import pytest

from conftest import BASE_URL, as_user
from workhub.services.campaign_tracking import TRACKING_PIXEL
from workhub.services.email_rendering import encode_tracking_url
from workhub.store.base import CAMPAIGN_ANALYTICS, CAMPAIGNS


EMPTY_ANALYTICS = {
    "total_sent": 1,
    "delivered": 1,
    "failed": 0,
    "opened": 0,
    "clicked": 0,
    "opens": [],
    "clicks": [],
}


@pytest.fixture
async def analytics_store(seeded_store):
    await seeded_store.set(CAMPAIGNS, "camp-1", {"company_id": "acme", "name": "C", "subject": "S"})
    await seeded_store.set(CAMPAIGN_ANALYTICS, "camp-1", EMPTY_ANALYTICS)
    return seeded_store


def assert_pixel(resp: httpx.Response) -> None:
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "image/gif"
    assert resp.headers["cache-control"] == "no-cache, no-store, must-revalidate"
    assert resp.content == TRACKING_PIXEL


@pytest.mark.anyio
async def test_open_is_recorded(client: httpx.AsyncClient, analytics_store) -> None:
    resp = await client.get(
        "/api/email-marketing/track/open/camp-1/trk-1", headers={"User-Agent": "MailClient/1.0"}
    )

    assert_pixel(resp)
    doc = await analytics_store.get(CAMPAIGN_ANALYTICS, "camp-1")
    assert doc["opened"] == 1
    assert len(doc["opens"]) == 1
    event = doc["opens"][0]
    assert event["tracking_id"] == "trk-1"
    assert event["user_agent"] == "MailClient/1.0"
    assert event["timestamp"] is not None
    assert "url" not in event


@pytest.mark.anyio
async def test_open_for_unknown_campaign_still_serves_pixel(client: httpx.AsyncClient) -> None:
    resp = await client.get("/api/email-marketing/track/open/nope/trk-1")
    assert_pixel(resp)


@pytest.mark.anyio
async def test_open_storage_failure_still_serves_pixel(
    client: httpx.AsyncClient, analytics_store, monkeypatch
) -> None:
    async def broken_update(*args, **kwargs):
        raise RuntimeError("store down")

    monkeypatch.setattr(analytics_store, "update", broken_update)

    resp = await client.get("/api/email-marketing/track/open/camp-1/trk-1")
    assert_pixel(resp)


@pytest.mark.anyio
async def test_concurrent_opens_are_all_counted(client: httpx.AsyncClient, analytics_store) -> None:
    n = 25
    responses = await asyncio.gather(
        *(client.get(f"/api/email-marketing/track/open/camp-1/trk-{i}") for i in range(n))
    )

    assert all(r.status_code == 200 for r in responses)
    doc = await analytics_store.get(CAMPAIGN_ANALYTICS, "camp-1")
    assert doc["opened"] == n
    assert len(doc["opens"]) == n
    assert {e["tracking_id"] for e in doc["opens"]} == {f"trk-{i}" for i in range(n)}


@pytest.mark.anyio
async def test_click_redirects_and_is_recorded(client: httpx.AsyncClient, analytics_store) -> None:
    target = "https://jobs.example.com/apply?role=eng&ref=mail"

    resp = await client.get(
        "/api/email-marketing/track/click/camp-1/trk-9", params={"u": encode_tracking_url(target)}
    )

    assert resp.status_code == 302
    assert resp.headers["location"] == target
    doc = await analytics_store.get(CAMPAIGN_ANALYTICS, "camp-1")
    assert doc["clicked"] == 1
    assert doc["clicks"][0]["url"] == target
    assert doc["clicks"][0]["tracking_id"] == "trk-9"


@pytest.mark.anyio
async def test_click_without_target(client: httpx.AsyncClient, analytics_store) -> None:
    resp = await client.get("/api/email-marketing/track/click/camp-1/trk-9")

    assert resp.status_code == 400
    assert resp.json()["error"]["message"] == "Missing target URL"
    assert (await analytics_store.get(CAMPAIGN_ANALYTICS, "camp-1"))["clicked"] == 0


@pytest.mark.anyio
async def test_undecodable_click_target_does_not_redirect(client: httpx.AsyncClient, analytics_store) -> None:
    resp = await client.get("/api/email-marketing/track/click/camp-1/trk-9", params={"u": "abcde"})

    assert resp.status_code == 502
    assert "location" not in resp.headers
    assert resp.json()["error"]["code"] == "tracking_failed"


@pytest.mark.anyio
async def test_click_storage_failure_does_not_redirect(client: httpx.AsyncClient) -> None:
    resp = await client.get(
        "/api/email-marketing/track/click/unknown/trk-9",
        params={"u": encode_tracking_url("https://example.com")},
    )

    assert resp.status_code == 502
    assert "location" not in resp.headers


@pytest.mark.anyio
async def test_send_then_follow_tracked_link(client: httpx.AsyncClient, mail) -> None:
    resp = await client.post(
        "/api/email-marketing/lists",
        json={"name": "Leads", "recipients": [{"email": "lead@example.com", "name": "Lee"}]},
        headers=as_user("admin-1"),
    )
    list_id = resp.json()["id"]
    resp = await client.post(
        "/api/email-marketing/campaigns",
        json={
            "name": "Open day",
            "subject": "Join us",
            "html_content": '<a href="https://acme.example/open-day">RSVP</a>',
        },
        headers=as_user("admin-1"),
    )
    campaign_id = resp.json()["id"]

    resp = await client.post(
        f"/api/email-marketing/campaigns/{campaign_id}/send",
        json={"list_ids": [list_id]},
        headers=as_user("admin-1"),
    )
    assert resp.status_code == 200, resp.text

    html = mail.sent[0].html
    pixel = re.search(r'<img src="([^"]+)" width="1"', html).group(1)
    link = re.search(r'href="([^"]+)"', html).group(1)
    assert pixel.startswith(BASE_URL) and link.startswith(BASE_URL)

    await client.get(pixel[len(BASE_URL):])
    resp = await client.get(link[len(BASE_URL):])
    assert resp.status_code == 302
    assert resp.headers["location"] == "https://acme.example/open-day"

    resp = await client.get(f"/api/email-marketing/campaigns/{campaign_id}/analytics", headers=as_user("admin-1"))
    analytics = resp.json()
    assert analytics["total_sent"] == 1
    assert analytics["delivered"] == 1
    assert analytics["opened"] == 1
    assert analytics["clicked"] == 1
    assert analytics["clicks"][0]["url"] == "https://acme.example/open-day"
