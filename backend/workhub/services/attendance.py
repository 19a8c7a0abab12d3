from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone
from typing import Any, Callable, Dict, List, Optional
from zoneinfo import ZoneInfo

from workhub.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    OutOfRangeError,
    ValidationError,
)
from workhub.schemas import GeoPoint, Identity, Role, parse_document
from workhub.schemas_attendance import (
    AttendanceRecord,
    AttendanceSettings,
    AttendanceStatusOut,
    Branch,
    ClockInRequest,
    Company,
    CompanyAttendanceSettingsIn,
)
from workhub.services.geo import haversine_distance_m
from workhub.store.base import ATTENDANCE, BRANCHES, COMPANIES, DocumentNotFoundError, DocumentStore
from workhub.utils import now_utc

logger = logging.getLogger("attendance")

DEFAULT_BRANCH_NAME = "Main Office"


@dataclass
class AttendancePolicy:
    """Settings and approved location that apply to one clock-in attempt."""

    settings: AttendanceSettings
    location: Optional[GeoPoint] = None
    company_id: Optional[str] = None
    branch_id: Optional[str] = None
    branch_name: str = DEFAULT_BRANCH_NAME


class AttendanceService:
    """Clock-in/clock-out with branch geofencing and late-arrival policy.

    Responsibilities:
    - Resolve which branch or company policy applies to a user
    - Reject clock-ins outside the approved radius
    - Require a reason for late arrivals
    - Keep at most one open record per user and day
    """

    def __init__(
        self,
        store: DocumentStore,
        *,
        clock: Callable[[], datetime] = now_utc,
        timezone: Optional[str] = None,
        default_radius_m: float = 100,
    ) -> None:
        self.store = store
        self._clock = clock
        self._tz = ZoneInfo(timezone) if timezone else dt_timezone.utc
        self._default_radius_m = default_radius_m

    # ------------------------------------------------------------------
    # Policy resolution
    # ------------------------------------------------------------------

    async def _get_branch(self, branch_id: str) -> Optional[Branch]:
        doc = await self.store.get(BRANCHES, branch_id)
        return None if doc is None else parse_document(Branch, doc, BRANCHES)

    @staticmethod
    def _apply_branch(policy: AttendancePolicy, branch: Branch) -> None:
        policy.settings = branch.attendance_settings
        policy.location = branch.location
        policy.branch_name = branch.name
        if not policy.company_id:
            policy.company_id = branch.company_id

    async def resolve_policy(self, identity: Identity, branch_id: Optional[str] = None) -> AttendancePolicy:
        policy = AttendancePolicy(settings=AttendanceSettings(), company_id=identity.company_id, branch_id=branch_id)

        if branch_id:
            if identity.role is Role.STAFF and branch_id not in identity.branch_ids:
                raise ForbiddenError("You are not assigned to this branch.", {"branch_id": branch_id})
            branch = await self._get_branch(branch_id)
            if branch is None:
                raise NotFoundError("Selected branch no longer exists.", {"branch_id": branch_id})
            self._apply_branch(policy, branch)

        elif len(identity.branch_ids) == 1:
            policy.branch_id = identity.branch_ids[0]
            branch = await self._get_branch(policy.branch_id)
            if branch is not None:
                self._apply_branch(policy, branch)
            else:
                logger.warning(
                    "Assigned branch %s of user %s is missing; clocking in without branch policy",
                    policy.branch_id,
                    identity.uid,
                )

        elif identity.company_id:
            doc = await self.store.get(COMPANIES, identity.company_id)
            if doc is not None:
                policy.settings = parse_document(Company, doc, COMPANIES).attendance_settings

        if policy.location is None:
            policy.location = policy.settings.location or policy.settings.approved_location
        return policy

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def check_location(self, policy: AttendancePolicy, reported: Optional[GeoPoint]) -> Optional[float]:
        """Return the distance to the approved location, or None when not enforced."""

        if not (policy.settings.require_location and policy.location is not None):
            return None
        if reported is None:
            raise ValidationError(
                "Location required for clock-in at this branch.",
                {"requires_location": True},
            )

        distance = haversine_distance_m(policy.location, reported)
        allowed = policy.settings.location_radius or self._default_radius_m
        # Compared at metre precision, the same value the client is shown.
        if round(distance) > allowed:
            raise OutOfRangeError(round(distance), allowed)
        return distance

    @staticmethod
    def check_late(settings: AttendanceSettings, notes: Optional[str], now_local: datetime) -> Optional[str]:
        """Return the late reason when the user is late, None when on time."""

        if not (settings.start_time and settings.is_active):
            return None

        hours, minutes = settings.start_hour_minute()
        start = now_local.replace(hour=hours, minute=minutes, second=0, microsecond=0)
        if now_local <= start:
            return None

        if not notes or not notes.strip():
            raise ValidationError(
                "You are clocking in late. Please provide a reason in the notes.",
                {"requires_late_reason": True},
            )
        return notes

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def _local(self, now: datetime) -> datetime:
        return now.astimezone(self._tz)

    async def _open_record(self, user_id: str, day: str) -> Optional[Dict[str, Any]]:
        docs = await self.store.query(ATTENDANCE, {"user_id": user_id, "date": day, "clock_out": None})
        return docs[0] if docs else None

    async def clock_in(self, identity: Identity, request: ClockInRequest) -> AttendanceRecord:
        now = self._clock()
        local_now = self._local(now)
        today = local_now.date().isoformat()

        # Read-then-write; two simultaneous requests can both pass this check.
        if await self._open_record(identity.uid, today) is not None:
            raise ConflictError("Already clocked in today")

        policy = await self.resolve_policy(identity, request.branch_id)
        distance = self.check_location(policy, request.location)
        late_reason = self.check_late(policy.settings, request.notes, local_now)

        data: Dict[str, Any] = {
            "user_id": identity.uid,
            "user_name": identity.display_name,
            "company_id": policy.company_id,
            "branch_id": policy.branch_id,
            "branch_name": policy.branch_name,
            "date": today,
            "clock_in": now,
            "clock_out": None,
            "location": request.location.model_dump() if request.location else None,
            "notes": request.notes or None,
            "status": "active",
            "is_late": late_reason is not None,
            "late_reason": late_reason,
            "created_at": now,
        }
        record_id = await self.store.add(ATTENDANCE, data)

        logger.info(
            "Clock-in user=%s branch=%s late=%s distance=%s",
            identity.uid,
            policy.branch_name,
            late_reason is not None,
            None if distance is None else round(distance),
        )
        return AttendanceRecord(id=record_id, **data)

    async def clock_out(self, identity: Identity, notes: Optional[str] = None) -> AttendanceRecord:
        now = self._clock()
        today = self._local(now).date().isoformat()

        doc = await self._open_record(identity.uid, today)
        if doc is None:
            raise NotFoundError("Not clocked in today")

        record = parse_document(AttendanceRecord, doc, ATTENDANCE)
        hours_worked = round((now - record.clock_in).total_seconds() / 3600, 2)

        merged_notes = record.notes
        if notes:
            merged_notes = f"{record.notes}\nClock out: {notes}" if record.notes else f"Clock out: {notes}"

        update = {
            "clock_out": now,
            "hours_worked": hours_worked,
            "notes": merged_notes,
            "status": "completed",
        }
        await self.store.update(ATTENDANCE, record.id, update)

        logger.info("Clock-out user=%s hours_worked=%s", identity.uid, hours_worked)
        return record.model_copy(update=update)

    async def get_status(self, identity: Identity) -> AttendanceStatusOut:
        today = self._local(self._clock()).date().isoformat()
        docs = await self.store.query(ATTENDANCE, {"user_id": identity.uid, "date": today})
        if not docs:
            return AttendanceStatusOut(status="not_clocked_in")

        records = sorted(
            (parse_document(AttendanceRecord, d, ATTENDANCE) for d in docs),
            key=lambda r: r.clock_in,
            reverse=True,
        )
        latest = records[0]
        return AttendanceStatusOut(
            status="clocked_out" if latest.clock_out else "clocked_in",
            attendance=latest,
        )

    async def list_records(
        self,
        identity: Identity,
        *,
        user_id: Optional[str] = None,
        date: Optional[str] = None,
    ) -> List[AttendanceRecord]:
        filters: Dict[str, Any] = {}
        if identity.role is Role.SUPER_ADMIN:
            pass
        elif identity.role is Role.COMPANY_ADMIN:
            if not identity.company_id:
                logger.warning("Company admin %s has no company; returning no attendance", identity.uid)
                return []
            filters["company_id"] = identity.company_id
        else:
            filters["user_id"] = identity.uid

        if user_id:
            if "user_id" in filters and filters["user_id"] != user_id:
                return []
            filters["user_id"] = user_id
        if date:
            filters["date"] = date

        docs = await self.store.query(ATTENDANCE, filters)
        records = [parse_document(AttendanceRecord, d, ATTENDANCE) for d in docs]
        records.sort(key=lambda r: r.clock_in, reverse=True)
        return records

    # ------------------------------------------------------------------
    # Company-level fallback settings
    # ------------------------------------------------------------------

    async def get_company_settings(
        self, identity: Identity, company_id: Optional[str] = None
    ) -> AttendanceSettings:
        target = identity.company_id
        if identity.role is Role.SUPER_ADMIN and company_id:
            target = company_id
        if not target:
            return AttendanceSettings()

        doc = await self.store.get(COMPANIES, target)
        if doc is None:
            return AttendanceSettings()
        return parse_document(Company, doc, COMPANIES).attendance_settings

    async def update_company_settings(
        self, identity: Identity, payload: CompanyAttendanceSettingsIn
    ) -> AttendanceSettings:
        if not identity.company_id:
            raise ValidationError("User is not associated with a company")

        settings = AttendanceSettings(
            start_time=payload.start_time,
            approved_location=payload.approved_location,
            require_location=payload.require_location,
            is_active=payload.is_active if payload.is_active is not None else bool(payload.start_time),
        )
        stored = {
            **settings.model_dump(exclude_none=True),
            "updated_at": self._clock(),
            "updated_by": identity.uid,
        }
        try:
            await self.store.update(COMPANIES, identity.company_id, {"attendance_settings": stored})
        except DocumentNotFoundError:
            raise NotFoundError("Company not found", {"company_id": identity.company_id})
        return settings
