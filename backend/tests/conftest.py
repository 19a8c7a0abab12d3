"""Shared test configuration and fixtures for backend tests.

Key principles:
- All HTTP calls go through the local ASGI app (httpx + ASGITransport).
- Every test gets a fresh InMemoryDocumentStore and a recording mail transport.
- AnyIO is the single async runner via pytest-anyio (@pytest.mark.anyio).
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, AsyncGenerator, Dict, Iterable, List

import httpx
import pytest
from httpx import ASGITransport

# Ensure backend root is on sys.path so that `server` and `workhub` are importable
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from server import create_app
from workhub.config import Settings
from workhub.services.email import EmailSendError, MailMessage
from workhub.store.base import BRANCHES, COMPANIES, USERS
from workhub.store.memory import InMemoryDocumentStore


BASE_URL = "https://api.workhub.test"

HQ_LOCATION = {"lat": 6.524379, "lng": 3.379206}

USERS_SEED: Dict[str, Dict[str, Any]] = {
    "super-1": {"role": "super_admin", "name": "Root"},
    "admin-1": {
        "role": "company_admin",
        "company_id": "acme",
        "name": "Ada Admin",
        "privileges": ["manage_attendance", "view_attendance", "view_branches", "manage_branches"],
    },
    "admin-2": {
        "role": "company_admin",
        "company_id": "globex",
        "name": "Gus Admin",
        "privileges": ["manage_attendance", "view_attendance", "view_branches", "manage_branches"],
    },
    "admin-noprivs": {"role": "company_admin", "company_id": "acme", "name": "Nia"},
    "staff-1": {
        "role": "staff",
        "company_id": "acme",
        "branch_ids": ["hq"],
        "name": "Sam Staff",
        "privileges": ["manage_attendance", "view_attendance"],
    },
    "staff-2": {
        "role": "staff",
        "company_id": "acme",
        "branch_ids": ["hq", "annex"],
        "name": "Tia Staff",
        "privileges": ["manage_attendance"],
    },
    "recruiter-1": {"role": "recruiter", "company_id": "acme", "privileges": ["manage_attendance"]},
}


class FakeMailTransport:
    """Records every message; addresses in `fail_for` raise EmailSendError."""

    default_from_email = "noreply@workhub.test"

    def __init__(self, *, configured: bool = True, fail_for: Iterable[str] = ()) -> None:
        self.configured = configured
        self.fail_for = set(fail_for)
        self.sent: List[MailMessage] = []
        self.attempts: List[str] = []

    def is_configured(self) -> bool:
        return self.configured

    async def send(self, message: MailMessage) -> None:
        self.attempts.append(message.to)
        if message.to in self.fail_for:
            raise EmailSendError(f"rejected {message.to}")
        self.sent.append(message)


def as_user(uid: str) -> Dict[str, str]:
    return {"X-User-Uid": uid}


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Force pytest-anyio to use asyncio event loop."""

    return "asyncio"


@pytest.fixture
def settings() -> Settings:
    return Settings(store_backend="memory", public_base_url=BASE_URL)


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def mail() -> FakeMailTransport:
    return FakeMailTransport()


@pytest.fixture
async def seeded_store(store: InMemoryDocumentStore) -> InMemoryDocumentStore:
    """Two companies, two acme branches and one user per role."""

    await store.set(COMPANIES, "acme", {"name": "Acme", "attendance_settings": {}})
    await store.set(COMPANIES, "globex", {"name": "Globex", "attendance_settings": {}})

    # Late policy stays off here so API tests do not depend on the wall clock.
    await store.set(
        BRANCHES,
        "hq",
        {
            "company_id": "acme",
            "name": "HQ",
            "address": "1 Marina Rd",
            "location": HQ_LOCATION,
            "attendance_settings": {
                "start_time": "09:00",
                "require_location": True,
                "location_radius": 100,
                "is_active": False,
            },
        },
    )
    await store.set(
        BRANCHES,
        "annex",
        {"company_id": "acme", "name": "Annex", "address": "", "attendance_settings": {}},
    )
    for uid, doc in USERS_SEED.items():
        await store.set(USERS, uid, doc)
    return store


@pytest.fixture
def app(settings: Settings, seeded_store: InMemoryDocumentStore, mail: FakeMailTransport):
    return create_app(settings=settings, store=seeded_store, mail_transport=mail)


@pytest.fixture
async def client(app) -> AsyncGenerator[httpx.AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
