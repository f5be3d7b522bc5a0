# sitrack/reports/routes.py
"""
Role dashboards over JSON.

Every write goes to the data service first. On success the route dispatches
the follow-up action into the caller's store (the realtime feed will usually
deliver the same change too; upserts make that harmless). On failure the
transaction is rolled back, an error toast is queued and the store is left
untouched.
"""
from flask import jsonify, request, current_app
from flask_login import current_user, login_required
from sqlalchemy.exc import SQLAlchemyError

from . import bp
from . import service
from sitrack.decorators import role_required
from sitrack.extensions import db
from sitrack.models import ReportRecord, TaskAssignmentRecord
from sitrack.sessions import get_session
from sitrack.tracking import actions as a
from sitrack.tracking.types import FileAttachment, Role

# camelCase request keys accepted next to the column names
FIELD_ALIASES = {
    "noSurat": "no_surat",
    "tanggalSurat": "tanggal_surat",
    "tanggalAgenda": "tanggal_agenda",
    "currentHolder": "current_holder",
    "originalFiles": "original_files",
}


# -------------------------
# Helpers
# -------------------------
def _payload() -> dict:
    data = request.get_json(silent=True) or {}
    return {FIELD_ALIASES.get(k, k): v for k, v in data.items()}


def _text(data: dict, key: str) -> str:
    return str(data.get(key) or "").strip()


def _commit(session, what: str):
    """Commit or roll back; returns an error response on failure, else None."""
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Remote write failed: %s", what)
        session.toasts.operation_failed(what, str(e))
        return jsonify({"error": f"Gagal {what}", "details": str(e)}), 500
    return None


def _report_or_404(report_id: str):
    rec = db.session.get(ReportRecord, report_id)
    if rec is None:
        return None, (jsonify({"error": "Report not found"}), 404)
    return rec, None


def _role() -> Role:
    return current_user.role_enum


def _visible(report, user_name: str, role: Role) -> bool:
    if role is Role.STAFF:
        return report.assignment_for(user_name) is not None
    return True


# -------------------------
# Reads
# -------------------------
@bp.get("/state")
@login_required
def state():
    session = get_session(current_user)
    view = session.store.view()
    return jsonify({
        "ok": True,
        "state": view.to_dict(),
        "isConnected": view.is_connected,
        "lastSyncTime": view.last_sync_time,
        "toasts": [t.to_dict() for t in session.center.drain()],
    })


@bp.get("/reports")
@login_required
def list_reports():
    view = get_session(current_user).store.view()
    role = _role()
    items = [r.to_dict() for r in view.reports if _visible(r, current_user.name, role)]
    return jsonify({"ok": True, "items": items})


@bp.get("/reports/<report_id>")
@login_required
def get_report(report_id: str):
    report = get_session(current_user).store.view().find_report(report_id)
    if report is None or not _visible(report, current_user.name, _role()):
        return jsonify({"error": "Report not found"}), 404
    return jsonify({"ok": True, "item": report.to_dict()})


# -------------------------
# TU
# -------------------------
@bp.post("/reports")
@role_required(Role.TU)
def create_report():
    data = _payload()
    errors = {}
    if not _text(data, "no_surat"):
        errors["noSurat"] = "Wajib diisi."
    if not _text(data, "hal"):
        errors["hal"] = "Wajib diisi."
    if errors:
        return jsonify({"errors": errors}), 400
    data["no_surat"], data["hal"] = _text(data, "no_surat"), _text(data, "hal")

    session = get_session(current_user)
    try:
        rec = service.create_report(data, current_user.name)
    except (KeyError, TypeError) as e:
        db.session.rollback()
        return jsonify({"error": "Invalid report payload", "details": str(e)}), 400
    failed = _commit(session, "membuat laporan")
    if failed:
        return failed

    report = service.report_from_record(rec)
    session.store.dispatch(a.AddReport(report))
    session.announce(session.toasts.report_created, report.id)
    return jsonify({"ok": True, "item": report.to_dict()}), 201


@bp.put("/reports/<report_id>")
@role_required(Role.TU, Role.KOORDINATOR)
def update_report(report_id: str):
    rec, missing = _report_or_404(report_id)
    if missing:
        return missing
    session = get_session(current_user)
    service.update_report(rec, _payload())
    failed = _commit(session, "memperbarui laporan")
    if failed:
        return failed

    report = service.report_from_record(rec)
    session.store.dispatch(a.UpdateReport(report))
    session.announce(session.toasts.report_updated)
    return jsonify({"ok": True, "item": report.to_dict()})


@bp.post("/reports/<report_id>/forward")
@role_required(Role.TU)
def forward_report(report_id: str):
    rec, missing = _report_or_404(report_id)
    if missing:
        return missing
    coordinator = _text(_payload(), "coordinator")
    if not coordinator:
        return jsonify({"errors": {"coordinator": "Wajib diisi."}}), 400

    session = get_session(current_user)
    service.forward_report(rec, coordinator, current_user.name)
    failed = _commit(session, "meneruskan laporan")
    if failed:
        return failed

    report = service.report_from_record(rec)
    session.store.dispatch(a.UpdateReport(report))
    session.announce(session.toasts.workflow_updated)
    return jsonify({"ok": True, "item": report.to_dict()})


@bp.post("/reports/<report_id>/files")
@role_required(Role.TU)
def attach_files(report_id: str):
    """Record attachments previously stored via ``POST /api/upload``."""
    rec, missing = _report_or_404(report_id)
    if missing:
        return missing
    files = _payload().get("files") or []
    if not isinstance(files, list) or not files:
        return jsonify({"errors": {"files": "Wajib diisi."}}), 400

    session = get_session(current_user)
    try:
        for f in files:
            service.attach_file(rec, FileAttachment.from_dict(f))
    except (KeyError, TypeError) as e:
        db.session.rollback()
        return jsonify({"error": "Invalid attachment", "details": str(e)}), 400
    failed = _commit(session, "menyimpan lampiran")
    if failed:
        return failed

    report = service.report_from_record(rec)
    session.store.dispatch(a.UpdateReport(report))
    names = ", ".join(str(f.get("fileName") or f.get("file_name") or "") for f in files)
    session.announce(session.toasts.file_uploaded, names)
    return jsonify({"ok": True, "item": report.to_dict()})


# -------------------------
# Admin
# -------------------------
@bp.delete("/reports/<report_id>")
@role_required(Role.ADMIN)
def delete_report(report_id: str):
    rec, missing = _report_or_404(report_id)
    if missing:
        return missing
    session = get_session(current_user)
    db.session.delete(rec)
    failed = _commit(session, "menghapus laporan")
    if failed:
        return failed

    session.store.dispatch(a.DeleteReport(report_id))
    return jsonify({"ok": True})


# -------------------------
# Koordinator
# -------------------------
@bp.post("/reports/<report_id>/assignments")
@role_required(Role.KOORDINATOR)
def assign_staff(report_id: str):
    rec, missing = _report_or_404(report_id)
    if missing:
        return missing
    data = _payload()
    staff_name = _text(data, "staffName") or _text(data, "staff_name")
    todo_list = data.get("todoList") or data.get("todo_list") or []
    errors = {}
    if not staff_name:
        errors["staffName"] = "Wajib diisi."
    if not isinstance(todo_list, list) or not any(str(t or "").strip() for t in todo_list):
        errors["todoList"] = "Minimal satu tugas."
    if errors:
        return jsonify({"errors": errors}), 400
    if service.find_assignment(rec, staff_name) is not None:
        return jsonify({"error": "Staff sudah ditugaskan", "details": staff_name}), 409

    session = get_session(current_user)
    service.assign_staff(rec, staff_name, todo_list, _text(data, "notes"), current_user.name)
    failed = _commit(session, "menugaskan staff")
    if failed:
        return failed

    report = service.report_from_record(rec)
    session.store.dispatch(a.UpdateReport(report))
    session.announce(session.toasts.task_assigned, staff_name)
    return jsonify({"ok": True, "item": report.to_dict()}), 201


@bp.post("/reports/<report_id>/revision")
@role_required(Role.KOORDINATOR)
def request_revision(report_id: str):
    rec, missing = _report_or_404(report_id)
    if missing:
        return missing
    data = _payload()
    staff_name = _text(data, "staffName") or _text(data, "staff_name")
    notes = _text(data, "revisionNotes") or _text(data, "revision_notes")
    if not staff_name or not notes:
        return jsonify({"errors": {"staffName": "Wajib diisi.", "revisionNotes": "Wajib diisi."}}), 400

    session = get_session(current_user)
    try:
        service.request_revision(rec, staff_name, notes, current_user.name)
    except LookupError:
        return jsonify({"error": "Assignment not found", "details": staff_name}), 404
    failed = _commit(session, "meminta revisi")
    if failed:
        return failed

    session.store.dispatch(a.RequestRevision(report_id, staff_name, notes))
    session.announce(session.toasts.revision_requested)
    report = session.store.view().find_report(report_id)
    return jsonify({"ok": True, "item": report.to_dict() if report else None})


# -------------------------
# Staff
# -------------------------
def _assignment_or_error(assignment_id: str):
    asg = db.session.get(TaskAssignmentRecord, assignment_id)
    if asg is None:
        return None, (jsonify({"error": "Assignment not found"}), 404)
    if _role() is Role.STAFF and asg.staff_name != current_user.name:
        return None, (jsonify({"error": "forbidden", "detail": "Not your assignment"}), 403)
    return asg, None


def _sync_assignment(session, asg):
    # the whole report, since completion also appends a workflow entry
    session.store.dispatch(a.UpdateReport(service.report_from_record(asg.report)))


@bp.post("/assignments/<assignment_id>/tasks")
@role_required(Role.STAFF, Role.KOORDINATOR)
def toggle_task(assignment_id: str):
    asg, err = _assignment_or_error(assignment_id)
    if err:
        return err
    data = _payload()
    task = _text(data, "task")
    if not task:
        return jsonify({"errors": {"task": "Wajib diisi."}}), 400

    session = get_session(current_user)
    try:
        service.toggle_task(asg, task, bool(data.get("done", True)))
    except LookupError:
        return jsonify({"error": "Task not found", "details": task}), 404
    failed = _commit(session, "memperbarui tugas")
    if failed:
        return failed

    _sync_assignment(session, asg)
    return jsonify({"ok": True, "item": service.assignment_from_record(asg).to_dict()})


@bp.post("/assignments/<assignment_id>/complete")
@role_required(Role.STAFF, Role.KOORDINATOR)
def complete_assignment(assignment_id: str):
    asg, err = _assignment_or_error(assignment_id)
    if err:
        return err

    session = get_session(current_user)
    service.complete_assignment(asg, current_user.name)
    failed = _commit(session, "menyelesaikan tugas")
    if failed:
        return failed

    _sync_assignment(session, asg)
    session.announce(session.toasts.task_completed)
    report = session.store.view().find_report(asg.report_id)
    return jsonify({
        "ok": True,
        "item": service.assignment_from_record(asg).to_dict(),
        "report": report.to_dict() if report else None,
    })
