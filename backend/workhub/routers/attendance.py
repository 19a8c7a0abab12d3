from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from workhub.access_control import Capability
from workhub.auth import require_capability
from workhub.config import API_PREFIX
from workhub.deps import get_attendance_service
from workhub.schemas import Identity
from workhub.schemas_attendance import (
    AttendanceRecord,
    AttendanceSettings,
    AttendanceStatusOut,
    ClockInRequest,
    ClockOutRequest,
    CompanyAttendanceSettingsIn,
)
from workhub.services.attendance import AttendanceService

router = APIRouter(prefix=f"{API_PREFIX}/attendance", tags=["attendance"])


@router.post("/clock-in", response_model=AttendanceRecord, status_code=201)
async def clock_in(
    payload: ClockInRequest,
    user: Identity = Depends(require_capability(Capability.CLOCK_IN)),
    service: AttendanceService = Depends(get_attendance_service),
) -> AttendanceRecord:
    return await service.clock_in(user, payload)


@router.post("/clock-out", response_model=AttendanceRecord)
async def clock_out(
    payload: Optional[ClockOutRequest] = None,
    user: Identity = Depends(require_capability(Capability.CLOCK_OUT)),
    service: AttendanceService = Depends(get_attendance_service),
) -> AttendanceRecord:
    return await service.clock_out(user, payload.notes if payload else None)


@router.get("/status", response_model=AttendanceStatusOut)
async def attendance_status(
    user: Identity = Depends(require_capability(Capability.ATTENDANCE_STATUS)),
    service: AttendanceService = Depends(get_attendance_service),
) -> AttendanceStatusOut:
    return await service.get_status(user)


@router.get("", response_model=List[AttendanceRecord])
async def list_attendance(
    user_id: Optional[str] = Query(default=None),
    date: Optional[str] = Query(default=None, pattern=r"^\d{4}-\d{2}-\d{2}$"),
    user: Identity = Depends(require_capability(Capability.VIEW_ATTENDANCE)),
    service: AttendanceService = Depends(get_attendance_service),
) -> List[AttendanceRecord]:
    return await service.list_records(user, user_id=user_id, date=date)


@router.get("/settings", response_model=AttendanceSettings)
async def get_attendance_settings(
    company_id: Optional[str] = Query(default=None),
    user: Identity = Depends(require_capability(Capability.VIEW_ATTENDANCE_SETTINGS)),
    service: AttendanceService = Depends(get_attendance_service),
) -> AttendanceSettings:
    return await service.get_company_settings(user, company_id)


@router.post("/settings", response_model=AttendanceSettings)
async def update_attendance_settings(
    payload: CompanyAttendanceSettingsIn,
    user: Identity = Depends(require_capability(Capability.MANAGE_ATTENDANCE_SETTINGS)),
    service: AttendanceService = Depends(get_attendance_service),
) -> AttendanceSettings:
    return await service.update_company_settings(user, payload)
