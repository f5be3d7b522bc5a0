# sitrack/reports/service.py
"""
Writes and reads against the data service tables.

Functions here only stage changes on ``db.session``; the calling route
commits (or rolls back) and then dispatches the follow-up store action.
"""
from __future__ import annotations

import re
import uuid
from typing import Iterable, List, Optional, Tuple

from sitrack.extensions import db
from sitrack.models import (
    Profile, ReportRecord, TaskAssignmentRecord, WorkflowRecord, FileAttachmentRecord,
)
from sitrack.tracking.progress import derive, task_progress
from sitrack.tracking.types import Assignment, AssignmentStatus, FileAttachment, Report, User
from sitrack.utils.tz import now_utc_naive, parse_date, parse_utc_naive

REPORT_ID_RE = re.compile(r"^RPT(\d+)$")


# -------------------------
# Conversions
# -------------------------
def profile_to_user(p: Profile) -> User:
    return User.from_row(p.to_row())


def report_from_record(rec: ReportRecord) -> Report:
    return Report.from_row(rec.to_row(nested=True))


def assignment_from_record(rec: TaskAssignmentRecord) -> Assignment:
    return Assignment.from_row(rec.to_row())


def load_remote_state() -> Tuple[List[User], List[Report]]:
    users = [profile_to_user(p) for p in Profile.query.order_by(Profile.id).all()]
    reports = [report_from_record(r) for r in ReportRecord.query.order_by(ReportRecord.created_at).all()]
    return users, reports


def all_reports() -> List[Report]:
    return [report_from_record(r) for r in ReportRecord.query.order_by(ReportRecord.created_at).all()]


# -------------------------
# Helpers
# -------------------------
def _short_id(prefix: str) -> str:
    return f"{prefix}{uuid.uuid4().hex[:12]}"


def next_report_id() -> str:
    highest = 0
    for (rid,) in db.session.query(ReportRecord.id).all():
        m = REPORT_ID_RE.match(rid or "")
        if m:
            highest = max(highest, int(m.group(1)))
    return f"RPT{highest + 1:03d}"


def refresh_derived(rec: ReportRecord) -> None:
    d = derive(assignment_from_record(a) for a in rec.assignments)
    rec.progress = d.progress
    rec.status = d.status.value


def add_workflow(rec: ReportRecord, action: str, actor: str, status: str = "completed") -> WorkflowRecord:
    entry = WorkflowRecord(
        id=_short_id("wf"),
        report_id=rec.id,
        seq=len(rec.workflow) + 1,
        action=action,
        user_name=actor,
        status=status,
        created_at=now_utc_naive(),
    )
    rec.workflow.append(entry)
    return entry


def _clean_list(values: Optional[Iterable]) -> List[str]:
    out = []
    for v in values or ():
        s = str(v or "").strip()
        if s and s not in out:
            out.append(s)
    return out


# -------------------------
# Reports
# -------------------------
def create_report(data: dict, actor: str) -> ReportRecord:
    rec = ReportRecord(
        id=data.get("id") or next_report_id(),
        no_surat=data["no_surat"],
        hal=data["hal"],
        layanan=data.get("layanan") or "",
        dari=data.get("dari") or "",
        tanggal_surat=parse_date(data.get("tanggal_surat")),
        tanggal_agenda=parse_date(data.get("tanggal_agenda")),
        current_holder=actor,
        assigned_staff=[],
        assigned_coordinators=[],
        created_by=actor,
    )
    db.session.add(rec)
    for f in data.get("original_files") or ():
        attach_file(rec, FileAttachment.from_dict(f))
    add_workflow(rec, f"Dibuat oleh {actor}", actor)
    refresh_derived(rec)
    return rec


UPDATABLE_FIELDS = ("no_surat", "hal", "layanan", "dari", "current_holder")


def update_report(rec: ReportRecord, data: dict) -> ReportRecord:
    for name in UPDATABLE_FIELDS:
        if name in data and data[name] is not None:
            setattr(rec, name, str(data[name]).strip())
    for name in ("tanggal_surat", "tanggal_agenda"):
        if name in data:
            setattr(rec, name, parse_date(data[name]))
    refresh_derived(rec)
    return rec


def forward_report(rec: ReportRecord, coordinator: str, actor: str) -> ReportRecord:
    rec.assigned_coordinators = _clean_list(list(rec.assigned_coordinators or []) + [coordinator])
    rec.current_holder = coordinator
    add_workflow(rec, f"Diteruskan ke Koordinator: {coordinator}", actor)
    return rec


def attach_file(rec: ReportRecord, attachment: FileAttachment) -> FileAttachmentRecord:
    f = FileAttachmentRecord(
        id=attachment.id or _short_id("file"),
        report_id=rec.id,
        file_name=attachment.file_name,
        file_url=attachment.file_url,
        uploaded_by=attachment.uploaded_by,
        uploaded_at=parse_utc_naive(attachment.uploaded_at) or now_utc_naive(),
        type=attachment.type or "original",
    )
    rec.files.append(f)
    return f


# -------------------------
# Assignments
# -------------------------
def assign_staff(rec: ReportRecord, staff_name: str, todo_list: Iterable[str],
                 notes: Optional[str], actor: str) -> TaskAssignmentRecord:
    asg = TaskAssignmentRecord(
        id=_short_id("ASG"),
        report_id=rec.id,
        staff_name=staff_name,
        todo_list=_clean_list(todo_list),
        completed_tasks=[],
        status=AssignmentStatus.PENDING.value,
        progress=0,
        notes=notes or None,
        assigned_at=now_utc_naive(),
    )
    rec.assignments.append(asg)
    rec.assigned_staff = _clean_list(list(rec.assigned_staff or []) + [staff_name])
    rec.current_holder = actor
    add_workflow(rec, f"Staff ditugaskan: {staff_name}", actor)
    refresh_derived(rec)
    return asg


def find_assignment(rec: ReportRecord, staff_name: str) -> Optional[TaskAssignmentRecord]:
    return next((a for a in rec.assignments if a.staff_name == staff_name), None)


def request_revision(rec: ReportRecord, staff_name: str, revision_notes: str, actor: str) -> TaskAssignmentRecord:
    asg = find_assignment(rec, staff_name)
    if asg is None:
        raise LookupError(staff_name)
    asg.status = AssignmentStatus.REVISION_REQUESTED.value
    asg.revision_notes = revision_notes
    asg.revision_requested_at = now_utc_naive()
    add_workflow(rec, f"Revisi diminta untuk {staff_name}", actor)
    refresh_derived(rec)
    return asg


def toggle_task(asg: TaskAssignmentRecord, task: str, done: bool) -> TaskAssignmentRecord:
    if task not in (asg.todo_list or []):
        raise LookupError(task)
    completed = [t for t in (asg.completed_tasks or []) if t != task]
    if done:
        completed.append(task)
    # keep to-do order
    asg.completed_tasks = [t for t in asg.todo_list if t in completed]
    asg.progress = task_progress(assignment_from_record(asg))
    if asg.status in (AssignmentStatus.PENDING.value, AssignmentStatus.REVISION_REQUESTED.value):
        asg.status = AssignmentStatus.IN_PROGRESS.value
    refresh_derived(asg.report)
    return asg


def complete_assignment(asg: TaskAssignmentRecord, actor: str) -> TaskAssignmentRecord:
    asg.status = AssignmentStatus.COMPLETED.value
    asg.completed_tasks = list(asg.todo_list or [])
    asg.progress = 100
    rec = asg.report
    add_workflow(rec, f"Tugas diselesaikan oleh {asg.staff_name}", actor)
    refresh_derived(rec)
    return asg


# -------------------------
# Profiles
# -------------------------
def create_profile(username: str, name: str, role: str, password: str) -> Profile:
    p = Profile(username=username, name=name, role=role)
    p.set_password(password)
    db.session.add(p)
    return p


def update_profile(p: Profile, name: Optional[str] = None, role: Optional[str] = None,
                   password: Optional[str] = None) -> Profile:
    if name:
        p.name = name
    if role:
        p.role = role
    if password:
        p.set_password(password)
    return p
