# sitrack/tracking/types.py
"""
Immutable domain records held by the state store.

Two wire shapes are understood:
  - snapshot dicts (camelCase), as persisted in the local slot and returned
    by the JSON API (``to_dict`` / ``from_dict``)
  - remote rows (snake_case), as delivered by the data service and its
    change events (``from_row``)
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

DEFAULT_USER_NAME = "Pengguna"


class Role(str, Enum):
    ADMIN       = "Admin"
    TU          = "TU"
    KOORDINATOR = "Koordinator"
    STAFF       = "Staff"

    @classmethod
    def parse(cls, value: Any) -> "Role":
        raw = str(value or "").strip()
        for r in cls:
            if r.value.lower() == raw.lower():
                return r
        return cls.STAFF


class AssignmentStatus(str, Enum):
    PENDING            = "pending"
    IN_PROGRESS        = "in-progress"
    COMPLETED          = "completed"
    REVISION_REQUESTED = "revision-requested"

    @classmethod
    def parse(cls, value: Any) -> "AssignmentStatus":
        try:
            return cls(str(value or "").strip())
        except ValueError:
            return cls.PENDING


class ReportStatus(str, Enum):
    IN_PROGRESS = "Dalam Proses"
    COMPLETED   = "Selesai"


def _tuple(items: Optional[Iterable[Any]]) -> Tuple[Any, ...]:
    return tuple(items or ())


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for k in keys:
        if k in data and data[k] is not None:
            return data[k]
    return default


# -------------------------
# User
# -------------------------
@dataclass(frozen=True)
class User:
    id: str
    name: str = DEFAULT_USER_NAME
    role: Role = Role.STAFF
    password: Optional[str] = None
    remote_id: Optional[str] = None

    def __post_init__(self):
        if not (self.name or "").strip():
            object.__setattr__(self, "name", DEFAULT_USER_NAME)
        if not isinstance(self.role, Role):
            object.__setattr__(self, "role", Role.parse(self.role))

    def to_dict(self) -> Dict[str, Any]:
        out = {"id": self.id, "name": self.name, "role": self.role.value}
        if self.password is not None:
            out["password"] = self.password
        if self.remote_id is not None:
            out["remoteId"] = self.remote_id
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        return cls(
            id=str(data["id"]),
            name=data.get("name") or DEFAULT_USER_NAME,
            role=Role.parse(data.get("role")),
            password=data.get("password"),
            remote_id=_pick(data, "remoteId", "supabase_id"),
        )

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "User":
        """Profiles are keyed by their remote id, which doubles as the local id."""
        rid = str(row["id"])
        return cls(
            id=rid,
            name=_pick(row, "name", "full_name", "username", default=DEFAULT_USER_NAME),
            role=Role.parse(row.get("role")),
            remote_id=rid,
        )


# -------------------------
# File attachments
# -------------------------
@dataclass(frozen=True)
class FileAttachment:
    id: str
    file_name: str
    file_url: str
    uploaded_at: str
    uploaded_by: str
    type: str = "original"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "fileName": self.file_name,
            "fileUrl": self.file_url,
            "uploadedAt": self.uploaded_at,
            "uploadedBy": self.uploaded_by,
            "type": self.type,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FileAttachment":
        return cls(
            id=str(data["id"]),
            file_name=_pick(data, "fileName", "file_name", default=""),
            file_url=_pick(data, "fileUrl", "file_url", default=""),
            uploaded_at=_pick(data, "uploadedAt", "uploaded_at", default=""),
            uploaded_by=_pick(data, "uploadedBy", "uploaded_by", default=""),
            type=data.get("type") or "original",
        )

    from_row = from_dict


# -------------------------
# Assignments
# -------------------------
@dataclass(frozen=True)
class Assignment:
    id: str
    staff_name: str
    todo_list: Tuple[str, ...] = ()
    completed_tasks: Tuple[str, ...] = ()
    status: AssignmentStatus = AssignmentStatus.PENDING
    progress: int = 0
    notes: Optional[str] = None
    revision_notes: Optional[str] = None
    revision_requested_at: Optional[str] = None
    assigned_at: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "todo_list", _tuple(self.todo_list))
        object.__setattr__(self, "completed_tasks", _tuple(self.completed_tasks))
        if not isinstance(self.status, AssignmentStatus):
            object.__setattr__(self, "status", AssignmentStatus.parse(self.status))

    @property
    def is_completed(self) -> bool:
        return self.status is AssignmentStatus.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "staffName": self.staff_name,
            "todoList": list(self.todo_list),
            "completedTasks": list(self.completed_tasks),
            "progress": self.progress,
            "status": self.status.value,
            "notes": self.notes,
            "revisionNotes": self.revision_notes,
            "revisionRequestedAt": self.revision_requested_at,
            "assignedAt": self.assigned_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Assignment":
        return cls(
            id=str(data["id"]),
            staff_name=_pick(data, "staffName", "staff_name", default=""),
            todo_list=_pick(data, "todoList", "todo_list", default=()),
            completed_tasks=_pick(data, "completedTasks", "completed_tasks", default=()),
            status=AssignmentStatus.parse(data.get("status")),
            progress=int(data.get("progress") or 0),
            notes=data.get("notes"),
            revision_notes=_pick(data, "revisionNotes", "revision_notes"),
            revision_requested_at=_pick(data, "revisionRequestedAt", "revision_requested_at"),
            assigned_at=_pick(data, "assignedAt", "assigned_at"),
        )

    from_row = from_dict


# -------------------------
# Workflow history
# -------------------------
@dataclass(frozen=True)
class WorkflowEntry:
    id: str
    action: str
    user: str
    timestamp: str
    status: str = "completed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "action": self.action,
            "user": self.user,
            "timestamp": self.timestamp,
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkflowEntry":
        return cls(
            id=str(data["id"]),
            action=data.get("action") or "",
            user=_pick(data, "user", "user_name", default=""),
            timestamp=_pick(data, "timestamp", "created_at", default=""),
            status=data.get("status") or "completed",
        )

    from_row = from_dict


# -------------------------
# Reports
# -------------------------
@dataclass(frozen=True)
class Report:
    id: str
    no_surat: str = ""
    hal: str = ""
    layanan: str = ""
    dari: str = ""
    tanggal_surat: Optional[str] = None
    tanggal_agenda: Optional[str] = None
    status: ReportStatus = ReportStatus.IN_PROGRESS
    progress: int = 0
    current_holder: Optional[str] = None
    original_files: Tuple[FileAttachment, ...] = ()
    assignments: Tuple[Assignment, ...] = ()
    assigned_staff: Tuple[str, ...] = ()
    assigned_coordinators: Tuple[str, ...] = ()
    workflow: Tuple[WorkflowEntry, ...] = ()

    def __post_init__(self):
        for name in ("original_files", "assignments", "assigned_staff",
                     "assigned_coordinators", "workflow"):
            object.__setattr__(self, name, _tuple(getattr(self, name)))
        if not isinstance(self.status, ReportStatus):
            # remote rows may carry legacy labels such as "in-progress"
            status = ReportStatus.COMPLETED if self.status == ReportStatus.COMPLETED.value \
                else ReportStatus.IN_PROGRESS
            object.__setattr__(self, "status", status)

    def assignment_for(self, staff_name: str) -> Optional[Assignment]:
        return next((a for a in self.assignments if a.staff_name == staff_name), None)

    def evolve(self, **changes) -> "Report":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "noSurat": self.no_surat,
            "hal": self.hal,
            "layanan": self.layanan,
            "dari": self.dari,
            "tanggalSurat": self.tanggal_surat,
            "tanggalAgenda": self.tanggal_agenda,
            "status": self.status.value,
            "progress": self.progress,
            "currentHolder": self.current_holder,
            "originalFiles": [f.to_dict() for f in self.original_files],
            "assignments": [a.to_dict() for a in self.assignments],
            "assignedStaff": list(self.assigned_staff),
            "assignedCoordinators": list(self.assigned_coordinators),
            "workflow": [w.to_dict() for w in self.workflow],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Report":
        return cls(
            id=str(data["id"]),
            no_surat=_pick(data, "noSurat", "no_surat", default=""),
            hal=data.get("hal") or "",
            layanan=data.get("layanan") or "",
            dari=data.get("dari") or "",
            tanggal_surat=_pick(data, "tanggalSurat", "tanggal_surat"),
            tanggal_agenda=_pick(data, "tanggalAgenda", "tanggal_agenda"),
            status=data.get("status") or ReportStatus.IN_PROGRESS,
            progress=int(data.get("progress") or 0),
            current_holder=_pick(data, "currentHolder", "current_holder"),
            original_files=[FileAttachment.from_dict(f)
                            for f in _pick(data, "originalFiles", "original_files", default=())],
            assignments=[Assignment.from_dict(a) for a in data.get("assignments") or ()],
            assigned_staff=_pick(data, "assignedStaff", "assigned_staff", default=()),
            assigned_coordinators=_pick(data, "assignedCoordinators", "assigned_coordinators", default=()),
            workflow=[WorkflowEntry.from_dict(w) for w in data.get("workflow") or ()],
        )

    from_row = from_dict


@dataclass(frozen=True)
class Progress:
    progress: int
    status: ReportStatus


__all__ = [
    "Role", "AssignmentStatus", "ReportStatus", "User", "FileAttachment",
    "Assignment", "WorkflowEntry", "Report", "Progress", "DEFAULT_USER_NAME",
]
