from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException

from workhub.access_control import Capability, ensure_capability
from workhub.db import get_store
from workhub.schemas import Identity, parse_document
from workhub.store.base import USERS, DocumentStore

logger = logging.getLogger("auth")

# The gateway in front of this service authenticates the caller and forwards
# the resolved uid in this header.
IDENTITY_HEADER = "X-User-Uid"


async def get_current_user(
    x_user_uid: Optional[str] = Header(default=None, alias=IDENTITY_HEADER),
    store: DocumentStore = Depends(get_store),
) -> Identity:
    if not x_user_uid or not x_user_uid.strip():
        raise HTTPException(status_code=401, detail="Unauthorized: no user id provided")

    uid = x_user_uid.strip()
    doc = await store.get(USERS, uid)
    if doc is None:
        logger.warning("User profile not found for uid=%s", uid)
        raise HTTPException(status_code=403, detail="Forbidden: user profile not found")

    return parse_document(Identity, {**doc, "uid": uid}, USERS)


def require_capability(capability: Capability):
    async def _dep(user: Identity = Depends(get_current_user)) -> Identity:
        ensure_capability(user, capability)
        return user

    return _dep
