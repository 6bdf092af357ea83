"""Database enumerations and table definitions.

## Schools
Tenants. Every user except the system administrator belongs to one school.

## Users
Usernames, roles and the school (and, for parents and students, the student)
each account is tied to.

## Students
Student names and grades, owned by a school.

## Records
One attendance status per student per calendar day.

## Settings
A single row with the attendance threshold used to flag students at risk.
"""

import datetime
import enum
import sqlite3


class AttendanceStatus(enum.StrEnum):
    """Daily attendance statuses."""

    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    EXCUSED = "excused"


STATUS_LABELS: dict[AttendanceStatus, str] = {
    AttendanceStatus.PRESENT: "حاضر",
    AttendanceStatus.ABSENT: "غائب",
    AttendanceStatus.LATE: "متأخر",
    AttendanceStatus.EXCUSED: "غائب بعذر",
}
"""Fixed localized tokens used in exports."""


class Role(enum.StrEnum):
    """User roles."""

    SYSTEM_ADMINISTRATOR = "system-administrator"
    PRINCIPAL = "principal"
    VICE_PRINCIPAL = "vice-principal"
    TEACHER = "teacher"
    STAFF = "staff"
    PARENT = "parent"
    STUDENT = "student"


class Permission(enum.StrEnum):
    """Actions that are granted to roles."""

    VIEW_DASHBOARD = "view-dashboard"
    TAKE_ATTENDANCE = "take-attendance"
    VIEW_REPORTS = "view-reports"
    MANAGE_STUDENTS = "manage-students"
    MANAGE_SETTINGS = "manage-settings"
    MANAGE_SCHOOLS = "manage-schools"
    VIEW_OWN_RECORD = "view-own-record"


_SCHOOL_STAFF = frozenset(
    {
        Permission.VIEW_DASHBOARD,
        Permission.TAKE_ATTENDANCE,
        Permission.VIEW_REPORTS,
    }
)

ROLE_PERMISSIONS: dict[Role, frozenset[Permission]] = {
    Role.SYSTEM_ADMINISTRATOR: frozenset({Permission.MANAGE_SCHOOLS}),
    Role.PRINCIPAL: _SCHOOL_STAFF
    | {Permission.MANAGE_STUDENTS, Permission.MANAGE_SETTINGS},
    Role.VICE_PRINCIPAL: _SCHOOL_STAFF | {Permission.MANAGE_STUDENTS},
    Role.TEACHER: _SCHOOL_STAFF,
    Role.STAFF: frozenset({Permission.VIEW_DASHBOARD, Permission.TAKE_ATTENDANCE}),
    Role.PARENT: frozenset({Permission.VIEW_OWN_RECORD}),
    Role.STUDENT: frozenset({Permission.VIEW_OWN_RECORD}),
}
"""Access matrix. Every Role must have an entry."""

SINGLE_STUDENT_ROLES = frozenset({Role.PARENT, Role.STUDENT})
"""Roles restricted to the record set of one related student."""


def has_permission(role: Role, permission: Permission) -> bool:
    """Return True if the role is granted the permission."""
    return permission in ROLE_PERMISSIONS[role]


def adapt_str_enum(val: enum.StrEnum | str) -> str:
    """Adapt StrEnum objects to Sqlite TEXT values."""
    if isinstance(val, enum.StrEnum):
        return val.value
    return val


def adapt_date_iso(val: datetime.date | str) -> str:
    """Adapt datetime.date to ISO 8601 date."""
    if isinstance(val, datetime.date):
        return val.isoformat()
    return val


def adapt_datetime_iso(val: datetime.datetime | str) -> str:
    """Adapt datetime.datetime to timezone-naive ISO 8601 date."""
    if isinstance(val, datetime.datetime):
        return val.replace(tzinfo=None).isoformat()
    return val


# As of Python 3.12 Sqlite's default date adapters are deprecated, so register
#   explicit ones. Enum adapters keep roles and statuses stored as plain text.
sqlite3.register_adapter(datetime.date, adapt_date_iso)
sqlite3.register_adapter(datetime.datetime, adapt_datetime_iso)
sqlite3.register_adapter(AttendanceStatus, adapt_str_enum)
sqlite3.register_adapter(Role, adapt_str_enum)


def to_date(val: datetime.date | str) -> datetime.date:
    """Convert a YYYY-MM-DD string to a datetime.date."""
    if isinstance(val, datetime.datetime):
        return val.date()
    if isinstance(val, datetime.date):
        return val
    return datetime.date.fromisoformat(val)
