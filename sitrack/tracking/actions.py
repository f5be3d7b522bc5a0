# sitrack/tracking/actions.py
"""The closed set of actions the state store accepts."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from .types import Assignment, Report, User


@dataclass(frozen=True)
class Login:
    user: User


@dataclass(frozen=True)
class Logout:
    pass


@dataclass(frozen=True)
class AddUser:
    user: User


@dataclass(frozen=True)
class UpdateUser:
    user: User


@dataclass(frozen=True)
class DeleteUser:
    user_id: str


@dataclass(frozen=True)
class AddReport:
    report: Report


@dataclass(frozen=True)
class UpdateReport:
    report: Report


@dataclass(frozen=True)
class DeleteReport:
    report_id: str


@dataclass(frozen=True)
class RequestRevision:
    report_id: str
    staff_name: str
    revision_notes: str


@dataclass(frozen=True)
class SetConnectionStatus:
    connected: bool


@dataclass(frozen=True)
class UpdateSyncTime:
    pass


@dataclass(frozen=True)
class SyncReportFromRemote:
    report: Report


@dataclass(frozen=True)
class SyncTaskFromRemote:
    report_id: str
    assignment: Assignment


Action = Union[
    Login, Logout,
    AddUser, UpdateUser, DeleteUser,
    AddReport, UpdateReport, DeleteReport,
    RequestRevision,
    SetConnectionStatus, UpdateSyncTime,
    SyncReportFromRemote, SyncTaskFromRemote,
]
