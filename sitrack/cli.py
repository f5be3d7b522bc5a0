# sitrack/cli.py
import click
from flask.cli import with_appcontext
from sqlalchemy import func

from .extensions import db
from .models import Profile, ReportRecord, TaskAssignmentRecord, WorkflowRecord
from .reports.service import create_profile
from .tracking.persistence import seed_state
from .tracking.types import Report
from .utils.tz import parse_date, parse_utc_naive

# username, display name, role, password
DEMO_PROFILES = (
    ("admin", "Administrator", "Admin", "admin123"),
    ("tu", "TU Staff", "TU", "tu123"),
    ("koordinator", "Suwarti, S.H", "Koordinator", "koordinator123"),
    ("staff", "Roza Erlinda", "Staff", "staff123"),
)


def _report_record(r: Report) -> ReportRecord:
    rec = ReportRecord(
        id=r.id,
        no_surat=r.no_surat,
        hal=r.hal,
        layanan=r.layanan,
        dari=r.dari,
        tanggal_surat=parse_date(r.tanggal_surat),
        tanggal_agenda=parse_date(r.tanggal_agenda),
        status=r.status.value,
        progress=r.progress,
        current_holder=r.current_holder,
        assigned_staff=list(r.assigned_staff),
        assigned_coordinators=list(r.assigned_coordinators),
        created_by=r.workflow[0].user if r.workflow else None,
    )
    for a in r.assignments:
        rec.assignments.append(TaskAssignmentRecord(
            id=a.id,
            staff_name=a.staff_name,
            todo_list=list(a.todo_list),
            completed_tasks=list(a.completed_tasks),
            status=a.status.value,
            progress=a.progress,
            notes=a.notes,
            assigned_at=parse_utc_naive(a.assigned_at),
        ))
    for seq, w in enumerate(r.workflow, start=1):
        rec.workflow.append(WorkflowRecord(
            id=f"{r.id}-{w.id}",
            seq=seq,
            action=w.action,
            user_name=w.user,
            status=w.status,
            created_at=parse_utc_naive(w.timestamp),
        ))
    return rec


def seed_demo_data() -> dict:
    """Insert demo accounts and the seed reports that are not there yet."""
    created = {"profiles": [], "reports": []}
    with db.session.no_autoflush:
        for username, name, role, password in DEMO_PROFILES:
            exists = Profile.query.filter(func.lower(Profile.username) == username).first()
            if not exists:
                create_profile(username, name, role, password)
                created["profiles"].append(username)
        for r in seed_state().reports:
            if db.session.get(ReportRecord, r.id) is None:
                db.session.add(_report_record(r))
                created["reports"].append(r.id)
    db.session.commit()
    return created


@click.group()
def seed():
    """Data seeding commands."""
    pass


@seed.command("demo")
@with_appcontext
def seed_demo():
    """Create demo accounts (one per role) and the sample report."""
    created = seed_demo_data()
    click.echo("Profiles created: " + (", ".join(created["profiles"]) or "none"))
    click.echo("Reports created: " + (", ".join(created["reports"]) or "none"))
