from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from workhub.access_control import Capability
from workhub.auth import require_capability
from workhub.config import API_PREFIX
from workhub.deps import get_branch_service
from workhub.schemas import Identity
from workhub.schemas_attendance import Branch, BranchAssignUserIn, BranchCreateIn, BranchUpdateIn
from workhub.services.branches import BranchService

router = APIRouter(prefix=f"{API_PREFIX}/branches", tags=["branches"])

ViewDep = require_capability(Capability.VIEW_BRANCHES)
ManageDep = require_capability(Capability.MANAGE_BRANCHES)


@router.get("", response_model=List[Branch])
async def list_branches(
    company_id: Optional[str] = Query(default=None),
    user: Identity = Depends(ViewDep),
    service: BranchService = Depends(get_branch_service),
) -> List[Branch]:
    return await service.list_branches(user, company_id)


@router.post("", response_model=Branch, status_code=201)
async def create_branch(
    payload: BranchCreateIn,
    user: Identity = Depends(ManageDep),
    service: BranchService = Depends(get_branch_service),
) -> Branch:
    return await service.create_branch(user, payload)


@router.get("/{branch_id}", response_model=Branch)
async def get_branch(
    branch_id: str,
    user: Identity = Depends(ViewDep),
    service: BranchService = Depends(get_branch_service),
) -> Branch:
    return await service.get_branch(user, branch_id)


@router.put("/{branch_id}", response_model=Branch)
async def update_branch(
    branch_id: str,
    payload: BranchUpdateIn,
    user: Identity = Depends(ManageDep),
    service: BranchService = Depends(get_branch_service),
) -> Branch:
    return await service.update_branch(user, branch_id, payload)


@router.delete("/{branch_id}")
async def delete_branch(
    branch_id: str,
    user: Identity = Depends(ManageDep),
    service: BranchService = Depends(get_branch_service),
) -> Dict[str, Any]:
    await service.delete_branch(user, branch_id)
    return {"ok": True, "id": branch_id}


@router.post("/{branch_id}/assign-user")
async def assign_user(
    branch_id: str,
    payload: BranchAssignUserIn,
    user: Identity = Depends(ManageDep),
    service: BranchService = Depends(get_branch_service),
) -> Dict[str, Any]:
    branch_ids = await service.assign_user(user, branch_id, payload.user_id)
    return {"ok": True, "id": branch_id, "user_id": payload.user_id, "branch_ids": branch_ids}
