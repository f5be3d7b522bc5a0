# sitrack/models.py
"""
Tables of the data service.

Every model exposes ``to_row()``: the snake_case dict that change events
carry and that ``sitrack.tracking.types`` knows how to read. ``Report`` can
additionally nest its children (``to_row(nested=True)``) for full reads.
"""
from datetime import datetime

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from .extensions import db
from .tracking.types import Role, AssignmentStatus, ReportStatus
from .utils.tz import iso_utc_z


def _iso_date(d):
    return d.isoformat() if d else None


# -------------------------
# Profiles (accounts)
# -------------------------
class Profile(db.Model, UserMixin):
    __tablename__ = "profiles"

    id            = db.Column(db.Integer, primary_key=True)
    username      = db.Column(db.String(64), unique=True, nullable=False, index=True)
    name          = db.Column(db.String(120), nullable=False)
    role          = db.Column(db.String(20), nullable=False, default=Role.STAFF.value)
    password_hash = db.Column(db.String(255), nullable=False)
    created_at    = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    @property
    def role_enum(self) -> Role:
        return Role.parse(self.role)

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "name": self.name,
            "role": self.role,
            "created_at": iso_utc_z(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<Profile {self.username} {self.role}>"


# -------------------------
# Reports
# -------------------------
class ReportRecord(db.Model):
    __tablename__ = "reports"

    id             = db.Column(db.String(32), primary_key=True)
    no_surat       = db.Column(db.String(120), nullable=False, index=True)
    hal            = db.Column(db.String(255), nullable=False)
    layanan        = db.Column(db.String(255), nullable=False, default="")
    dari           = db.Column(db.String(255), nullable=False, default="")
    tanggal_surat  = db.Column(db.Date)
    tanggal_agenda = db.Column(db.Date)

    # denormalized copies of the derived fields; readers re-derive anyway
    status   = db.Column(db.String(20), nullable=False, default=ReportStatus.IN_PROGRESS.value)
    progress = db.Column(db.Integer, nullable=False, default=0)

    current_holder        = db.Column(db.String(120))
    assigned_staff        = db.Column(db.JSON, nullable=False, default=list)
    assigned_coordinators = db.Column(db.JSON, nullable=False, default=list)

    created_by = db.Column(db.String(120))
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    assignments = db.relationship(
        "TaskAssignmentRecord", backref="report", lazy="selectin",
        cascade="all, delete-orphan", order_by="TaskAssignmentRecord.assigned_at",
    )
    workflow = db.relationship(
        "WorkflowRecord", backref="report", lazy="selectin",
        cascade="all, delete-orphan", order_by="WorkflowRecord.seq",
    )
    files = db.relationship(
        "FileAttachmentRecord", backref="report", lazy="selectin",
        cascade="all, delete-orphan", order_by="FileAttachmentRecord.uploaded_at",
    )

    def to_row(self, nested: bool = False) -> dict:
        row = {
            "id": self.id,
            "no_surat": self.no_surat,
            "hal": self.hal,
            "layanan": self.layanan,
            "dari": self.dari,
            "tanggal_surat": _iso_date(self.tanggal_surat),
            "tanggal_agenda": _iso_date(self.tanggal_agenda),
            "status": self.status,
            "progress": self.progress,
            "current_holder": self.current_holder,
            "assigned_staff": list(self.assigned_staff or []),
            "assigned_coordinators": list(self.assigned_coordinators or []),
            "created_by": self.created_by,
            "created_at": iso_utc_z(self.created_at),
            "updated_at": iso_utc_z(self.updated_at),
        }
        if nested:
            row["assignments"] = [a.to_row() for a in self.assignments]
            row["workflow"] = [w.to_row() for w in self.workflow]
            row["original_files"] = [f.to_row() for f in self.files]
        return row

    def __repr__(self) -> str:
        return f"<Report {self.id} {self.no_surat}>"


class TaskAssignmentRecord(db.Model):
    __tablename__ = "task_assignments"

    id              = db.Column(db.String(32), primary_key=True)
    report_id       = db.Column(db.String(32), db.ForeignKey("reports.id", ondelete="CASCADE"),
                                nullable=False, index=True)
    staff_name      = db.Column(db.String(120), nullable=False)
    todo_list       = db.Column(db.JSON, nullable=False, default=list)
    completed_tasks = db.Column(db.JSON, nullable=False, default=list)
    status          = db.Column(db.String(24), nullable=False, default=AssignmentStatus.PENDING.value)
    progress        = db.Column(db.Integer, nullable=False, default=0)
    notes           = db.Column(db.Text)
    revision_notes  = db.Column(db.Text)
    revision_requested_at = db.Column(db.DateTime)
    assigned_at     = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "report_id": self.report_id,
            "staff_name": self.staff_name,
            "todo_list": list(self.todo_list or []),
            "completed_tasks": list(self.completed_tasks or []),
            "status": self.status,
            "progress": self.progress,
            "notes": self.notes,
            "revision_notes": self.revision_notes,
            "revision_requested_at": iso_utc_z(self.revision_requested_at),
            "assigned_at": iso_utc_z(self.assigned_at),
        }


class WorkflowRecord(db.Model):
    __tablename__ = "workflow_history"

    id         = db.Column(db.String(32), primary_key=True)
    report_id  = db.Column(db.String(32), db.ForeignKey("reports.id", ondelete="CASCADE"),
                           nullable=False, index=True)
    seq        = db.Column(db.Integer, nullable=False, default=0)
    action     = db.Column(db.String(255), nullable=False)
    user_name  = db.Column(db.String(120), nullable=False)
    status     = db.Column(db.String(24), nullable=False, default="completed")
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "report_id": self.report_id,
            "action": self.action,
            "user_name": self.user_name,
            "status": self.status,
            "created_at": iso_utc_z(self.created_at),
        }


class FileAttachmentRecord(db.Model):
    __tablename__ = "file_attachments"

    id          = db.Column(db.String(64), primary_key=True)
    report_id   = db.Column(db.String(32), db.ForeignKey("reports.id", ondelete="CASCADE"),
                            nullable=False, index=True)
    file_name   = db.Column(db.String(255), nullable=False)
    file_url    = db.Column(db.String(1024), nullable=False)
    uploaded_by = db.Column(db.String(120), nullable=False)
    uploaded_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    type        = db.Column(db.String(16), nullable=False, default="original")

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "report_id": self.report_id,
            "file_name": self.file_name,
            "file_url": self.file_url,
            "uploaded_by": self.uploaded_by,
            "uploaded_at": iso_utc_z(self.uploaded_at),
            "type": self.type,
        }
