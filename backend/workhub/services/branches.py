from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from workhub.access_control import ensure_company_access
from workhub.errors import ForbiddenError, NotFoundError, ValidationError
from workhub.schemas import Identity, Role, parse_document
from workhub.schemas_attendance import Branch, BranchCreateIn, BranchUpdateIn, default_branch_settings
from workhub.store.base import BRANCHES, USERS, DocumentStore
from workhub.utils import now_utc

logger = logging.getLogger("branches")


class BranchService:
    def __init__(self, store: DocumentStore, *, clock: Callable[[], datetime] = now_utc) -> None:
        self.store = store
        self._clock = clock

    async def _load(self, branch_id: str) -> Branch:
        doc = await self.store.get(BRANCHES, branch_id)
        if doc is None:
            raise NotFoundError("Branch not found", {"branch_id": branch_id})
        return parse_document(Branch, doc, BRANCHES)

    async def list_branches(self, identity: Identity, company_id: Optional[str] = None) -> List[Branch]:
        filters: Dict[str, Any] = {}
        if identity.role in (Role.COMPANY_ADMIN, Role.STAFF):
            if not identity.company_id:
                logger.warning("%s %s has no company; returning no branches", identity.role.value, identity.uid)
                return []
            filters["company_id"] = identity.company_id
        elif identity.role is Role.SUPER_ADMIN and company_id:
            filters["company_id"] = company_id

        docs = await self.store.query(BRANCHES, filters)
        branches = [parse_document(Branch, d, BRANCHES) for d in docs]
        branches.sort(key=lambda b: b.name.lower())
        return branches

    async def create_branch(self, identity: Identity, payload: BranchCreateIn) -> Branch:
        if identity.role is Role.SUPER_ADMIN:
            company_id = payload.company_id
            if not company_id:
                raise ValidationError("company_id is required for super admin")
        else:
            company_id = identity.company_id
            if not company_id:
                raise ValidationError("Your account is not linked to a company")

        data: Dict[str, Any] = {
            "name": payload.name.strip(),
            "address": payload.address,
            "location": payload.location.model_dump(),
            "company_id": company_id,
            "attendance_settings": (payload.attendance_settings or default_branch_settings()).model_dump(
                exclude_none=True
            ),
            "created_at": self._clock(),
            "created_by": identity.uid,
        }
        branch_id = await self.store.add(BRANCHES, data)
        logger.info("Branch %s created for company %s by %s", branch_id, company_id, identity.uid)
        return parse_document(Branch, {**data, "id": branch_id}, BRANCHES)

    async def get_branch(self, identity: Identity, branch_id: str) -> Branch:
        branch = await self._load(branch_id)
        ensure_company_access(identity, branch.company_id)
        if identity.role is Role.STAFF and branch_id not in identity.branch_ids:
            raise ForbiddenError("Staff can only view their own branches")
        return branch

    async def update_branch(self, identity: Identity, branch_id: str, payload: BranchUpdateIn) -> Branch:
        branch = await self._load(branch_id)
        ensure_company_access(identity, branch.company_id)

        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            return branch
        update = {
            **changes,
            "updated_at": self._clock(),
            "updated_by": identity.uid,
        }
        await self.store.update(BRANCHES, branch_id, update)
        return await self._load(branch_id)

    async def assign_user(self, identity: Identity, branch_id: str, user_id: str) -> List[str]:
        """Add the branch to a user's branches and return the resulting branch ids."""

        branch = await self._load(branch_id)
        ensure_company_access(identity, branch.company_id)

        doc = await self.store.get(USERS, user_id)
        if doc is None:
            raise NotFoundError("User not found", {"user_id": user_id})
        user = parse_document(Identity, {**doc, "uid": user_id}, USERS)
        if user.company_id != branch.company_id:
            raise ForbiddenError(
                "User does not belong to the branch's company",
                {"user_id": user_id, "branch_id": branch_id},
            )

        branch_ids = list(user.branch_ids)
        if branch_id not in branch_ids:
            branch_ids.append(branch_id)
        await self.store.update(
            USERS,
            user_id,
            {"branch_ids": branch_ids, "updated_at": self._clock(), "updated_by": identity.uid},
        )
        logger.info("User %s assigned to branch %s by %s", user_id, branch_id, identity.uid)
        return branch_ids

    async def delete_branch(self, identity: Identity, branch_id: str) -> None:
        branch = await self._load(branch_id)
        ensure_company_access(identity, branch.company_id)
        await self.store.delete(BRANCHES, branch_id)
        logger.info("Branch %s deleted by %s", branch_id, identity.uid)
