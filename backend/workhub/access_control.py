"""Capability evaluation.

Every authorization decision goes through `can(identity, capability)`:
a capability names the roles allowed to use it and, optionally, a privilege
those roles must also hold. Super admins pass every check.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Optional

from workhub.errors import ForbiddenError
from workhub.schemas import Identity, Role


class Capability(str, Enum):
    CLOCK_IN = "clock_in"
    CLOCK_OUT = "clock_out"
    VIEW_ATTENDANCE = "view_attendance"
    ATTENDANCE_STATUS = "attendance_status"
    VIEW_ATTENDANCE_SETTINGS = "view_attendance_settings"
    MANAGE_ATTENDANCE_SETTINGS = "manage_attendance_settings"
    VIEW_BRANCHES = "view_branches"
    MANAGE_BRANCHES = "manage_branches"
    MANAGE_EMAIL_MARKETING = "manage_email_marketing"


@dataclass(frozen=True)
class CapabilityRule:
    roles: Optional[FrozenSet[Role]] = None  # None: any role
    privilege: Optional[str] = None
    privilege_roles: Optional[FrozenSet[Role]] = None  # None: privilege applies to every role


_ADMIN_AND_STAFF = frozenset({Role.COMPANY_ADMIN, Role.STAFF})
_COMPANY_ADMIN = frozenset({Role.COMPANY_ADMIN})

RULES: dict[Capability, CapabilityRule] = {
    Capability.CLOCK_IN: CapabilityRule(roles=_ADMIN_AND_STAFF, privilege="manage_attendance"),
    Capability.CLOCK_OUT: CapabilityRule(privilege="manage_attendance"),
    Capability.VIEW_ATTENDANCE: CapabilityRule(privilege="view_attendance"),
    Capability.ATTENDANCE_STATUS: CapabilityRule(roles=_ADMIN_AND_STAFF),
    Capability.VIEW_ATTENDANCE_SETTINGS: CapabilityRule(roles=_COMPANY_ADMIN),
    Capability.MANAGE_ATTENDANCE_SETTINGS: CapabilityRule(roles=_COMPANY_ADMIN),
    Capability.VIEW_BRANCHES: CapabilityRule(
        roles=_ADMIN_AND_STAFF, privilege="view_branches", privilege_roles=_COMPANY_ADMIN
    ),
    Capability.MANAGE_BRANCHES: CapabilityRule(roles=_COMPANY_ADMIN, privilege="manage_branches"),
    Capability.MANAGE_EMAIL_MARKETING: CapabilityRule(roles=_COMPANY_ADMIN),
}


def can(identity: Identity, capability: Capability) -> bool:
    if identity.role is Role.SUPER_ADMIN:
        return True

    rule = RULES[capability]
    if rule.roles is not None and identity.role not in rule.roles:
        return False

    if rule.privilege is not None:
        applies = rule.privilege_roles is None or identity.role in rule.privilege_roles
        if applies and rule.privilege not in identity.privileges:
            return False

    return True


def ensure_capability(identity: Identity, capability: Capability) -> None:
    if not can(identity, capability):
        raise ForbiddenError(
            f"Role '{identity.role.value}' is not allowed to {capability.value.replace('_', ' ')}",
            {"capability": capability.value},
        )


def ensure_company_access(identity: Identity, company_id: Optional[str]) -> None:
    """Company admins may only touch documents of their own company."""

    if identity.role is Role.COMPANY_ADMIN and company_id != identity.company_id:
        raise ForbiddenError("Access denied: resource belongs to a different company")
