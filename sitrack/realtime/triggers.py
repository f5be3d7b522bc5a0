# sitrack/realtime/triggers.py
"""
Row-change notifications for the tracked tables.

Rows are snapshotted at flush time (while the pre-flush ``new`` / ``dirty`` /
``deleted`` sets are still visible) and published to the application's hub
only once the transaction commits. A rollback discards them.
"""
from __future__ import annotations

from flask import current_app, has_app_context
from sqlalchemy import event

from sitrack.extensions import db
from .broker import ChangeEvent

PENDING_KEY = "sitrack_realtime_pending"

# parents before children for inserts/updates; the reverse for deletes
TABLE_ORDER = ("profiles", "reports", "task_assignments", "workflow_history", "file_attachments")

_installed = False


def _table(obj):
    name = getattr(obj, "__tablename__", None)
    return name if name in TABLE_ORDER and hasattr(obj, "to_row") else None


def _ordered(objs, reverse=False):
    tracked = [(o, _table(o)) for o in objs]
    tracked = [(o, t) for o, t in tracked if t]
    return sorted(tracked, key=lambda ot: TABLE_ORDER.index(ot[1]), reverse=reverse)


def _collect(session, flush_context):
    pending = session.info.setdefault(PENDING_KEY, [])
    for obj, table in _ordered(session.new):
        pending.append(ChangeEvent(table, "INSERT", new=obj.to_row()))
    for obj, table in _ordered(session.dirty):
        if not session.is_modified(obj, include_collections=False):
            continue
        row = obj.to_row()
        pending.append(ChangeEvent(table, "UPDATE", new=row, old={"id": row["id"]}))
    for obj, table in _ordered(session.deleted, reverse=True):
        pending.append(ChangeEvent(table, "DELETE", old=obj.to_row()))


def _publish(session):
    events = session.info.pop(PENDING_KEY, None)
    if not events or not has_app_context():
        return
    hub = current_app.extensions.get("realtime_hub")
    if hub is None:
        return
    for evt in events:
        hub.publish(evt)


def _discard(session, *args):
    session.info.pop(PENDING_KEY, None)


def install_triggers():
    """Attach the session hooks once per process; the hub is looked up per app."""
    global _installed
    if _installed:
        return
    event.listen(db.session, "after_flush", _collect)
    event.listen(db.session, "after_commit", _publish)
    event.listen(db.session, "after_rollback", _discard)
    event.listen(db.session, "after_soft_rollback", _discard)
    _installed = True
