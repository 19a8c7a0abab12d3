from __future__ import annotations

import re
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from workhub.schemas import GeoPoint

_HH_MM = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def _check_start_time(v: Optional[str]) -> Optional[str]:
    if v is None or v == "":
        return None
    if not _HH_MM.match(v.strip()):
        raise ValueError("start_time must be HH:MM (24-hour)")
    return v.strip()


class AttendanceSettings(BaseModel):
    start_time: Optional[str] = None
    require_location: bool = False
    # 0 or unset falls back to the service default radius.
    location_radius: Optional[float] = Field(default=None, ge=0)
    is_active: bool = False
    location: Optional[GeoPoint] = None
    approved_location: Optional[GeoPoint] = None

    @field_validator("start_time")
    @classmethod
    def _start_time(cls, v: Optional[str]) -> Optional[str]:
        return _check_start_time(v)

    def start_hour_minute(self) -> tuple[int, int]:
        if not self.start_time:
            raise ValueError("start_time is not set")
        hours, minutes = self.start_time.split(":")
        return int(hours), int(minutes)


def default_branch_settings() -> AttendanceSettings:
    return AttendanceSettings(start_time="09:00", require_location=True, location_radius=100, is_active=True)


class Company(BaseModel):
    id: str
    name: Optional[str] = None
    attendance_settings: AttendanceSettings = Field(default_factory=AttendanceSettings)


class Branch(BaseModel):
    id: str
    company_id: str
    name: str
    address: str = ""
    location: Optional[GeoPoint] = None
    attendance_settings: AttendanceSettings = Field(default_factory=AttendanceSettings)
    created_at: Optional[datetime] = None
    created_by: Optional[str] = None


class AttendanceRecord(BaseModel):
    id: str
    user_id: str
    user_name: Optional[str] = None
    company_id: Optional[str] = None
    branch_id: Optional[str] = None
    branch_name: Optional[str] = None
    date: str
    clock_in: datetime
    clock_out: Optional[datetime] = None
    location: Optional[GeoPoint] = None
    notes: Optional[str] = None
    is_late: bool = False
    late_reason: Optional[str] = None
    status: Literal["active", "completed"] = "active"
    hours_worked: Optional[float] = None
    created_at: Optional[datetime] = None


class ClockInRequest(BaseModel):
    location: Optional[GeoPoint] = None
    notes: Optional[str] = None
    branch_id: Optional[str] = None


class ClockOutRequest(BaseModel):
    notes: Optional[str] = None


class CompanyAttendanceSettingsIn(BaseModel):
    start_time: Optional[str] = None
    approved_location: Optional[GeoPoint] = None
    require_location: bool = False
    is_active: Optional[bool] = None

    @field_validator("start_time")
    @classmethod
    def _start_time(cls, v: Optional[str]) -> Optional[str]:
        return _check_start_time(v)


class BranchSettingsIn(AttendanceSettings):
    location_radius: Optional[float] = Field(default=None, gt=0)


class BranchCreateIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    address: str = ""
    location: GeoPoint
    attendance_settings: Optional[BranchSettingsIn] = None
    company_id: Optional[str] = None


class BranchUpdateIn(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    address: Optional[str] = None
    location: Optional[GeoPoint] = None
    attendance_settings: Optional[BranchSettingsIn] = None


class BranchAssignUserIn(BaseModel):
    user_id: str = Field(..., min_length=1)


class AttendanceStatusOut(BaseModel):
    status: Literal["not_clocked_in", "clocked_in", "clocked_out"]
    attendance: Optional[AttendanceRecord] = None
