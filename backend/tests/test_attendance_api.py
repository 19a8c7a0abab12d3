from __future__ import annotations

import httpx
import pytest

from conftest import as_user


NEAR = {"lat": 6.525279, "lng": 3.379206}
FAR = {"lat": 6.526179, "lng": 3.379206}


@pytest.mark.anyio
async def test_clock_in_and_out_roundtrip(client: httpx.AsyncClient) -> None:
    resp = await client.post(
        "/api/attendance/clock-in",
        json={"location": NEAR, "notes": "Morning"},
        headers=as_user("staff-1"),
    )
    assert resp.status_code == 201, resp.text
    record = resp.json()
    assert record["branch_id"] == "hq"
    assert record["branch_name"] == "HQ"
    assert record["status"] == "active"
    assert record["clock_out"] is None

    resp = await client.get("/api/attendance/status", headers=as_user("staff-1"))
    assert resp.status_code == 200
    assert resp.json()["status"] == "clocked_in"

    resp = await client.post(
        "/api/attendance/clock-out", json={"notes": "Leaving"}, headers=as_user("staff-1")
    )
    assert resp.status_code == 200, resp.text
    closed = resp.json()
    assert closed["id"] == record["id"]
    assert closed["status"] == "completed"
    assert closed["notes"] == "Morning\nClock out: Leaving"
    assert closed["hours_worked"] is not None

    resp = await client.get("/api/attendance/status", headers=as_user("staff-1"))
    assert resp.json()["status"] == "clocked_out"


@pytest.mark.anyio
async def test_clock_out_without_body(client: httpx.AsyncClient) -> None:
    await client.post("/api/attendance/clock-in", json={"location": NEAR}, headers=as_user("staff-1"))

    resp = await client.post("/api/attendance/clock-out", headers=as_user("staff-1"))

    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "completed"


@pytest.mark.anyio
async def test_out_of_range_error_envelope(client: httpx.AsyncClient) -> None:
    resp = await client.post(
        "/api/attendance/clock-in",
        json={"location": FAR},
        headers={**as_user("staff-1"), "X-Correlation-Id": "cid-123"},
    )

    assert resp.status_code == 400
    assert resp.headers["X-Correlation-Id"] == "cid-123"
    error = resp.json()["error"]
    assert error["code"] == "out_of_range"
    assert error["details"]["distance"] == 200
    assert error["details"]["allowed_radius"] == 100
    assert error["details"]["correlation_id"] == "cid-123"
    assert "200m" in error["message"]


@pytest.mark.anyio
async def test_missing_location_is_rejected(client: httpx.AsyncClient) -> None:
    resp = await client.post("/api/attendance/clock-in", json={}, headers=as_user("staff-1"))

    assert resp.status_code == 400
    body = resp.json()["error"]
    assert body["code"] == "validation_error"
    assert body["details"]["requires_location"] is True


@pytest.mark.anyio
async def test_double_clock_in_conflicts(client: httpx.AsyncClient) -> None:
    first = await client.post("/api/attendance/clock-in", json={"location": NEAR}, headers=as_user("staff-1"))
    assert first.status_code == 201

    second = await client.post("/api/attendance/clock-in", json={"location": NEAR}, headers=as_user("staff-1"))
    assert second.status_code == 400
    assert second.json()["error"]["code"] == "conflict"


@pytest.mark.anyio
async def test_clock_out_when_not_clocked_in(client: httpx.AsyncClient) -> None:
    resp = await client.post("/api/attendance/clock-out", json={}, headers=as_user("staff-1"))

    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "not_found"


@pytest.mark.anyio
async def test_invalid_coordinates_fail_request_validation(client: httpx.AsyncClient) -> None:
    resp = await client.post(
        "/api/attendance/clock-in",
        json={"location": {"lat": 123.0, "lng": 3.0}},
        headers=as_user("staff-1"),
    )

    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "validation_error"


@pytest.mark.anyio
async def test_identity_is_required(client: httpx.AsyncClient) -> None:
    resp = await client.post("/api/attendance/clock-in", json={"location": NEAR})
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "unauthorized"

    resp = await client.post("/api/attendance/clock-in", json={"location": NEAR}, headers=as_user("ghost"))
    assert resp.status_code == 403


@pytest.mark.anyio
@pytest.mark.parametrize("uid", ["recruiter-1", "admin-noprivs", "super-1"])
async def test_clock_in_capability(client: httpx.AsyncClient, uid: str) -> None:
    resp = await client.post("/api/attendance/clock-in", json={"location": NEAR}, headers=as_user(uid))

    if uid == "super-1":
        # Super admins pass every capability check; no branch or company applies.
        assert resp.status_code == 201, resp.text
    else:
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "forbidden"


@pytest.mark.anyio
async def test_staff_branch_choice_is_enforced(client: httpx.AsyncClient) -> None:
    resp = await client.post(
        "/api/attendance/clock-in", json={"branch_id": "annex"}, headers=as_user("staff-1")
    )
    assert resp.status_code == 403

    resp = await client.post(
        "/api/attendance/clock-in", json={"branch_id": "annex"}, headers=as_user("staff-2")
    )
    assert resp.status_code == 201
    assert resp.json()["branch_name"] == "Annex"


@pytest.mark.anyio
async def test_list_attendance_scoping(client: httpx.AsyncClient) -> None:
    await client.post("/api/attendance/clock-in", json={"location": NEAR}, headers=as_user("staff-1"))
    await client.post("/api/attendance/clock-in", json={"branch_id": "annex"}, headers=as_user("staff-2"))

    resp = await client.get("/api/attendance", headers=as_user("staff-1"))
    assert resp.status_code == 200
    assert [r["user_id"] for r in resp.json()] == ["staff-1"]

    resp = await client.get("/api/attendance", headers=as_user("admin-1"))
    assert {r["user_id"] for r in resp.json()} == {"staff-1", "staff-2"}

    resp = await client.get("/api/attendance", headers=as_user("admin-2"))
    assert resp.json() == []

    # staff-2 lacks the view_attendance privilege
    resp = await client.get("/api/attendance", headers=as_user("staff-2"))
    assert resp.status_code == 403


@pytest.mark.anyio
async def test_company_settings_endpoints(client: httpx.AsyncClient) -> None:
    resp = await client.get("/api/attendance/settings", headers=as_user("admin-1"))
    assert resp.status_code == 200
    assert resp.json()["start_time"] is None

    resp = await client.post(
        "/api/attendance/settings",
        json={"start_time": "08:00", "require_location": True, "approved_location": NEAR},
        headers=as_user("admin-1"),
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["is_active"] is True

    resp = await client.get("/api/attendance/settings", headers=as_user("admin-1"))
    assert resp.json()["start_time"] == "08:00"
    assert resp.json()["require_location"] is True

    resp = await client.post(
        "/api/attendance/settings", json={"start_time": "25:99"}, headers=as_user("admin-1")
    )
    assert resp.status_code == 422

    resp = await client.get("/api/attendance/settings", headers=as_user("staff-1"))
    assert resp.status_code == 403
