"""Role-based access control: the fixed role -> capability table."""
from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Any, FrozenSet, Mapping, Optional, Union


class Role(str, Enum):
    """The closed set of roles. Every identity carries exactly one."""

    GLOBAL_ADMIN = "GLOBAL_ADMIN"
    TENANT_ADMIN = "TENANT_ADMIN"
    STAFF = "STAFF"
    GUARDIAN = "GUARDIAN"
    MEMBER = "MEMBER"


class Capability(str, Enum):
    # platform
    MANAGE_ALL_TENANTS = "manage-all-tenants"
    CREATE_TENANT = "create-tenant"
    DELETE_TENANT = "delete-tenant"
    VIEW_ALL_IDENTITIES = "view-all-identities"

    # school administration
    MANAGE_TENANT = "manage-tenant"
    MANAGE_MEMBERS = "manage-members"
    MANAGE_STUDENTS = "manage-students"
    MANAGE_STAFF = "manage-staff"
    MANAGE_GUARDIANS = "manage-guardians"
    MANAGE_CLASSES = "manage-classes"
    MANAGE_SUBJECTS = "manage-subjects"
    VIEW_REPORTS = "view-reports"
    MANAGE_BILLING = "manage-billing"

    # teaching
    MANAGE_OWN_CLASSES = "manage-own-classes"
    RECORD_ATTENDANCE = "record-attendance"
    RECORD_GRADES = "record-grades"
    VIEW_OWN_STUDENTS = "view-own-students"
    CREATE_ASSIGNMENTS = "create-assignments"

    # families and students
    VIEW_OWN_DEPENDENTS = "view-own-dependents"
    VIEW_GRADES = "view-grades"
    VIEW_ATTENDANCE = "view-attendance"
    PAY_INVOICES = "pay-invoices"
    VIEW_OWN_PROFILE = "view-own-profile"
    VIEW_ASSIGNMENTS = "view-assignments"


PERMISSIONS: Mapping[Role, FrozenSet[Capability]] = MappingProxyType(
    {
        Role.GLOBAL_ADMIN: frozenset(
            {
                Capability.MANAGE_ALL_TENANTS,
                Capability.CREATE_TENANT,
                Capability.DELETE_TENANT,
                Capability.VIEW_ALL_IDENTITIES,
            }
        ),
        Role.TENANT_ADMIN: frozenset(
            {
                Capability.MANAGE_TENANT,
                Capability.MANAGE_MEMBERS,
                Capability.MANAGE_STUDENTS,
                Capability.MANAGE_STAFF,
                Capability.MANAGE_GUARDIANS,
                Capability.MANAGE_CLASSES,
                Capability.MANAGE_SUBJECTS,
                Capability.VIEW_REPORTS,
                Capability.MANAGE_BILLING,
            }
        ),
        Role.STAFF: frozenset(
            {
                Capability.MANAGE_OWN_CLASSES,
                Capability.RECORD_ATTENDANCE,
                Capability.RECORD_GRADES,
                Capability.VIEW_OWN_STUDENTS,
                Capability.CREATE_ASSIGNMENTS,
            }
        ),
        Role.GUARDIAN: frozenset(
            {
                Capability.VIEW_OWN_DEPENDENTS,
                Capability.VIEW_GRADES,
                Capability.VIEW_ATTENDANCE,
                Capability.PAY_INVOICES,
            }
        ),
        Role.MEMBER: frozenset(
            {
                Capability.VIEW_OWN_PROFILE,
                Capability.VIEW_GRADES,
                Capability.VIEW_ATTENDANCE,
                Capability.VIEW_ASSIGNMENTS,
            }
        ),
    }
)

# Roles allowed to hold administrative manage-* capabilities.
ADMIN_ROLES: FrozenSet[Role] = frozenset({Role.GLOBAL_ADMIN, Role.TENANT_ADMIN})


def parse_role(value: Any) -> Optional[Role]:
    """Return the Role for ``value`` or None when it is not a known role."""
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        return None


def parse_capability(value: Any) -> Optional[Capability]:
    if isinstance(value, Capability):
        return value
    try:
        return Capability(value)
    except ValueError:
        return None


def capabilities_for(role: Union[Role, str]) -> FrozenSet[Capability]:
    parsed = parse_role(role)
    if parsed is None:
        return frozenset()
    return PERMISSIONS.get(parsed, frozenset())


def has_capability(role: Union[Role, str, None], capability: Union[Capability, str]) -> bool:
    """Fail-closed lookup: unknown roles and unknown capabilities are denied."""
    parsed = parse_capability(capability)
    if parsed is None:
        return False
    return parsed in capabilities_for(role)

