"""
Closed catalogue of permission keys and the baseline role matrix.

Roles stored in the database may only reference keys from ``Permission``.
``ROLE_MATRIX`` seeds an empty roles table and backs ``POST /roles/matrix/sync``.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Iterable, Mapping

from .errors import AuthzValidationError


class Permission(str, Enum):
    SYSTEM_ADMIN = "system.admin"

    USER_CREATE = "user.create"
    USER_READ = "user.read"
    USER_UPDATE = "user.update"
    USER_DELETE = "user.delete"
    USER_TOGGLE_ACTIVE = "user.toggle_active"

    ROLE_CREATE = "role.create"
    ROLE_READ = "role.read"
    ROLE_UPDATE = "role.update"
    ROLE_DELETE = "role.delete"

    NATIONAL_CREATE = "national.create"
    NATIONAL_READ = "national.read"
    NATIONAL_UPDATE = "national.update"
    NATIONAL_DELETE = "national.delete"

    DISTRICT_CREATE = "district.create"
    DISTRICT_READ = "district.read"
    DISTRICT_UPDATE = "district.update"
    DISTRICT_DELETE = "district.delete"

    CHURCH_CREATE = "church.create"
    CHURCH_READ = "church.read"
    CHURCH_UPDATE = "church.update"
    CHURCH_DELETE = "church.delete"

    MEMBER_CREATE = "member.create"
    MEMBER_READ = "member.read"
    MEMBER_UPDATE = "member.update"
    MEMBER_DELETE = "member.delete"
    MEMBER_INVITE = "member.invite"
    MEMBER_UPLOAD = "member.upload"
    MEMBER_STATS = "member.stats"
    MEMBER_LEADERS = "member.leaders"
    MEMBER_BY_CHURCH = "member.by_church"
    MEMBER_BIRTHDAYS = "member.birthdays"
    MEMBER_ANNIVERSARIES = "member.anniversaries"
    MEMBER_TEMPLATE_DOWNLOAD = "member.template_download"

    EVENT_CREATE = "event.create"
    EVENT_READ = "event.read"
    EVENT_UPDATE = "event.update"
    EVENT_DELETE = "event.delete"

    OCCURRENCE_CREATE = "occurrence.create"
    OCCURRENCE_READ = "occurrence.read"
    OCCURRENCE_UPDATE = "occurrence.update"
    OCCURRENCE_DELETE = "occurrence.delete"

    ATTENDANCE_CREATE = "attendance.create"
    ATTENDANCE_READ = "attendance.read"
    ATTENDANCE_UPDATE = "attendance.update"
    ATTENDANCE_DELETE = "attendance.delete"
    ATTENDANCE_EXPORT = "attendance.export"
    ATTENDANCE_SUMMARY = "attendance.summary"
    ATTENDANCE_TIMESERIES = "attendance.timeseries"
    ATTENDANCE_WEEKLY = "attendance.weekly"
    ATTENDANCE_ADMIN_SUMMARY = "attendance.admin.summary"
    ATTENDANCE_ADMIN_TIMESERIES = "attendance.admin.timeseries"
    ATTENDANCE_ADMIN_LEADERBOARD = "attendance.admin.leaderboard"

    CELL_CREATE = "cell.create"
    CELL_READ = "cell.read"
    CELL_UPDATE = "cell.update"
    CELL_DELETE = "cell.delete"
    CELL_ANALYTICS = "cell.analytics"
    CELL_MEETING_CREATE = "cell.meeting.create"
    CELL_MEETING_UPDATE = "cell.meeting.update"
    CELL_MEETING_DELETE = "cell.meeting.delete"
    CELL_REPORT_SUBMIT = "cell.report.submit"
    CELL_REPORT_READ = "cell.report.read"
    CELL_REPORT_UPDATE = "cell.report.update"
    CELL_REPORT_DELETE = "cell.report.delete"

    GROUP_CREATE = "group.create"
    GROUP_READ = "group.read"
    GROUP_UPDATE = "group.update"
    GROUP_DELETE = "group.delete"
    GROUP_REQUEST_READ = "group.request.read"
    GROUP_REQUEST_HANDLE = "group.request.handle"

    FOLLOWUP_CREATE = "followup.create"
    FOLLOWUP_READ = "followup.read"
    FOLLOWUP_UPDATE = "followup.update"
    FOLLOWUP_ASSIGN = "followup.assign"

    COMMENT_DELETE_ANY = "comment.delete.any"


ALL_PERMISSIONS: frozenset[str] = frozenset(p.value for p in Permission)

SITE_ADMIN = "siteAdmin"


def _keys(*perms: Permission) -> tuple[str, ...]:
    return tuple(p.value for p in perms)


_READ_ONLY_CHURCH = _keys(
    Permission.EVENT_READ,
    Permission.OCCURRENCE_READ,
    Permission.CELL_READ,
    Permission.GROUP_READ,
)

_CHURCH_OPERATIONS = _keys(
    Permission.USER_CREATE,
    Permission.USER_READ,
    Permission.USER_UPDATE,
    Permission.USER_TOGGLE_ACTIVE,
    Permission.CHURCH_READ,
    Permission.CHURCH_UPDATE,
    Permission.MEMBER_CREATE,
    Permission.MEMBER_READ,
    Permission.MEMBER_UPDATE,
    Permission.MEMBER_DELETE,
    Permission.MEMBER_INVITE,
    Permission.MEMBER_UPLOAD,
    Permission.MEMBER_STATS,
    Permission.MEMBER_LEADERS,
    Permission.MEMBER_BY_CHURCH,
    Permission.MEMBER_BIRTHDAYS,
    Permission.MEMBER_ANNIVERSARIES,
    Permission.MEMBER_TEMPLATE_DOWNLOAD,
    Permission.EVENT_CREATE,
    Permission.EVENT_READ,
    Permission.EVENT_UPDATE,
    Permission.EVENT_DELETE,
    Permission.OCCURRENCE_CREATE,
    Permission.OCCURRENCE_READ,
    Permission.OCCURRENCE_UPDATE,
    Permission.OCCURRENCE_DELETE,
    Permission.ATTENDANCE_CREATE,
    Permission.ATTENDANCE_READ,
    Permission.ATTENDANCE_UPDATE,
    Permission.ATTENDANCE_DELETE,
    Permission.ATTENDANCE_EXPORT,
    Permission.ATTENDANCE_SUMMARY,
    Permission.ATTENDANCE_TIMESERIES,
    Permission.ATTENDANCE_WEEKLY,
    Permission.CELL_CREATE,
    Permission.CELL_READ,
    Permission.CELL_UPDATE,
    Permission.CELL_DELETE,
    Permission.CELL_ANALYTICS,
    Permission.CELL_MEETING_CREATE,
    Permission.CELL_MEETING_UPDATE,
    Permission.CELL_MEETING_DELETE,
    Permission.CELL_REPORT_SUBMIT,
    Permission.CELL_REPORT_READ,
    Permission.CELL_REPORT_UPDATE,
    Permission.CELL_REPORT_DELETE,
    Permission.GROUP_CREATE,
    Permission.GROUP_READ,
    Permission.GROUP_UPDATE,
    Permission.GROUP_DELETE,
    Permission.GROUP_REQUEST_READ,
    Permission.GROUP_REQUEST_HANDLE,
    Permission.FOLLOWUP_CREATE,
    Permission.FOLLOWUP_READ,
    Permission.FOLLOWUP_UPDATE,
    Permission.FOLLOWUP_ASSIGN,
    Permission.COMMENT_DELETE_ANY,
)

_REGIONAL_OVERSIGHT = _keys(
    Permission.ROLE_READ,
    Permission.DISTRICT_READ,
    Permission.CHURCH_CREATE,
    Permission.ATTENDANCE_ADMIN_SUMMARY,
    Permission.ATTENDANCE_ADMIN_TIMESERIES,
    Permission.ATTENDANCE_ADMIN_LEADERBOARD,
)

ROLE_MATRIX: Mapping[str, tuple[str, ...]] = {
    SITE_ADMIN: tuple(p.value for p in Permission),
    "nationalPastor": _CHURCH_OPERATIONS
    + _REGIONAL_OVERSIGHT
    + _keys(
        Permission.NATIONAL_READ,
        Permission.NATIONAL_UPDATE,
        Permission.DISTRICT_CREATE,
        Permission.DISTRICT_UPDATE,
        Permission.CHURCH_DELETE,
        Permission.USER_DELETE,
    ),
    "districtPastor": _CHURCH_OPERATIONS + _REGIONAL_OVERSIGHT,
    "churchAdmin": _CHURCH_OPERATIONS,
    "pastor": _keys(
        Permission.USER_READ,
        Permission.CHURCH_READ,
        Permission.MEMBER_READ,
        Permission.MEMBER_UPDATE,
        Permission.MEMBER_BIRTHDAYS,
        Permission.MEMBER_ANNIVERSARIES,
        Permission.EVENT_CREATE,
        Permission.EVENT_READ,
        Permission.EVENT_UPDATE,
        Permission.ATTENDANCE_CREATE,
        Permission.ATTENDANCE_READ,
        Permission.ATTENDANCE_SUMMARY,
        Permission.FOLLOWUP_CREATE,
        Permission.FOLLOWUP_READ,
        Permission.FOLLOWUP_UPDATE,
        Permission.FOLLOWUP_ASSIGN,
    )
    + _READ_ONLY_CHURCH,
    "volunteer": _keys(
        Permission.MEMBER_READ,
        Permission.ATTENDANCE_CREATE,
        Permission.ATTENDANCE_READ,
        Permission.CELL_REPORT_SUBMIT,
        Permission.FOLLOWUP_READ,
        Permission.FOLLOWUP_UPDATE,
    )
    + _READ_ONLY_CHURCH,
    "member": _keys(Permission.EVENT_READ, Permission.GROUP_READ),
}


def validate_permissions(perms: Iterable[str]) -> tuple[str, ...]:
    """
    Normalize a list of permission keys.

    Keys are stripped, blanks dropped and duplicates collapsed (first occurrence
    wins). Any key outside the catalogue is rejected.
    """

    if isinstance(perms, (str, bytes)) or perms is None:
        raise AuthzValidationError("permissions must be a list of strings")

    normalized = [str(p).strip() for p in perms]
    normalized = [p for p in normalized if p]
    unknown = [p for p in normalized if p not in ALL_PERMISSIONS]
    if unknown:
        raise AuthzValidationError(f"Unknown permission(s): {', '.join(sorted(set(unknown)))}")
    return tuple(dict.fromkeys(normalized))


_CAMEL_BOUNDARY_RE = re.compile(r"([a-z])([A-Z])")


def label_from_key(key: str) -> str:
    """``districtPastor`` -> ``District Pastor``."""
    spaced = _CAMEL_BOUNDARY_RE.sub(r"\1 \2", key)
    return spaced[:1].upper() + spaced[1:]
