# sitrack/tracking/session.py
"""
Tracking session: one store and one realtime connection per logged-in user.

Opening a session logs the user into the store, pulls the remote tables once
and then (after ``setup_delay`` seconds) subscribes to their change events.
Every event becomes an ordinary store action; nothing here writes remotely.
"""
from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional, Tuple

from apscheduler.jobstores.base import JobLookupError

from sitrack.notifications import ToastCenter, TrackingToasts
from sitrack.realtime.bridge import ConnectionStatus, RealtimeBridge, RealtimeConnection, TableCallbacks
from . import actions as a
from .reconcile import merge_remote_report
from .store import Store
from .types import Assignment, AssignmentStatus, Report, User

log = logging.getLogger(__name__)

DEFAULT_TABLES = ("reports", "task_assignments", "workflow_history", "profiles")

Loader = Callable[[], Tuple[List[User], List[Report]]]


class TrackingSession:
    def __init__(
        self,
        store: Store,
        client,
        *,
        tables: Iterable[str] = DEFAULT_TABLES,
        scheduler=None,
        setup_delay: float = 1.0,
        loader: Optional[Loader] = None,
        toasts: Optional[ToastCenter] = None,
    ):
        self.store = store
        self.client = client
        self.bridge = RealtimeBridge(client)
        self.tables = tuple(tables)
        self.scheduler = scheduler
        self.setup_delay = float(setup_delay or 0)
        self.loader = loader
        self.center = toasts or ToastCenter()
        self.toasts = TrackingToasts(self.center)
        self.connection: Optional[RealtimeConnection] = None
        self._job = None
        self._active = False
        self._lock = threading.RLock()

    # -------------------------
    # Lifecycle
    # -------------------------
    def open(self, user: User):
        self.store.dispatch(a.Login(user))
        self.hydrate()
        self.start()

    def close(self):
        self.stop()
        self.store.dispatch(a.Logout())

    @property
    def is_connected(self) -> bool:
        return bool(self.connection and self.connection.is_connected)

    def start(self):
        if not self.store.state.is_authenticated:
            return
        with self._lock:
            self._active = True
            if self.setup_delay > 0 and self.scheduler is not None:
                run_at = datetime.now(timezone.utc) + timedelta(seconds=self.setup_delay)
                self._job = self.scheduler.add_job(self._setup, "date", run_date=run_at)
                return
        self._setup()

    def stop(self):
        with self._lock:
            self._active = False
            job, self._job = self._job, None
            if job is not None:
                try:
                    job.remove()
                except JobLookupError:
                    pass  # already ran
            conn, self.connection = self.connection, None
        if conn is not None:
            conn.close()
        self.store.dispatch(a.SetConnectionStatus(False))

    def set_tables(self, tables: Iterable[str]):
        """Swap the subscribed table set; the old subscriptions are torn down first."""
        tables = tuple(tables)
        if tables == self.tables:
            return
        self.tables = tables
        if self._active:
            self.stop()
            self.start()

    def hydrate(self):
        if self.loader is None:
            return
        try:
            users, reports = self.loader()
        except Exception as e:
            log.exception("Loading remote state failed")
            self.toasts.operation_failed("memuat data", str(e))
            return
        for u in users:
            self.store.dispatch(a.AddUser(u))
        for r in reports:
            self.store.dispatch(a.SyncReportFromRemote(r))
        self._prune(users, reports)

    def _prune(self, users, reports):
        """Drop local rows the remote no longer has (deleted while logged out)."""
        state = self.store.state
        keep_users = {u.id for u in users}
        if state.current_user is not None:
            keep_users.add(state.current_user.id)
        for u in state.users:
            if u.id not in keep_users:
                self.store.dispatch(a.DeleteUser(u.id))
        keep_reports = {r.id for r in reports}
        for r in state.reports:
            if r.id not in keep_reports:
                log.info("Report %s no longer exists remotely; removed", r.id)
                self.store.dispatch(a.DeleteReport(r.id))

    def _setup(self):
        with self._lock:
            self._job = None
            if not self._active:
                return
            if self.client is None:
                log.warning("Realtime not configured. Realtime features disabled.")
                self.store.dispatch(a.SetConnectionStatus(False))
                return
            conn = self.bridge.subscribe(self.tables, self._callbacks(), on_status=self._status_changed)
            self.connection = conn
        if conn.is_connected:
            self.toasts.sync_success()
        else:
            self.toasts.connection_error()

    def _status_changed(self, status):
        log.debug("Realtime status: %s", status.value)
        if status is not ConnectionStatus.CONNECTING:
            self.store.dispatch(a.SetConnectionStatus(status is ConnectionStatus.CONNECTED))

    def announce(self, toast: Callable[..., object], *args):
        """Show a follow-up toast unless the realtime feed will announce it anyway."""
        if not self.is_connected:
            toast(*args)

    # -------------------------
    # Event handlers
    # -------------------------
    def _callbacks(self):
        return {
            "reports": TableCallbacks(self._report_inserted, self._report_updated, self._report_deleted),
            "task_assignments": TableCallbacks(self._task_inserted, self._task_updated, self._task_deleted),
            "workflow_history": TableCallbacks(self._workflow_inserted, self._workflow_updated),
            "profiles": TableCallbacks(self._profile_changed, self._profile_changed, self._profile_deleted),
        }

    def _sync_report(self, row) -> Report:
        report = merge_remote_report(self.store.state.find_report(str(row["id"])), row)
        self.store.dispatch(a.SyncReportFromRemote(report))
        return report

    def _report_inserted(self, evt):
        log.debug("New report created: %s", evt.new.get("id"))
        report = self._sync_report(evt.new)
        self.toasts.report_created(report.id)

    def _report_updated(self, evt):
        log.debug("Report updated: %s", evt.new.get("id"))
        self._sync_report(evt.new)
        self.toasts.workflow_updated()

    def _report_deleted(self, evt):
        self.store.dispatch(a.DeleteReport(str(evt.old["id"])))

    def _sync_task(self, row) -> Assignment:
        assignment = Assignment.from_row(row)
        report_id = str(row.get("report_id") or "")
        if self.store.state.find_report(report_id) is None:
            log.info("Task %s references unknown report %s; ignored", assignment.id, report_id)
        self.store.dispatch(a.SyncTaskFromRemote(report_id, assignment))
        return assignment

    def _task_inserted(self, evt):
        assignment = self._sync_task(evt.new)
        self.toasts.task_assigned(assignment.staff_name)

    def _task_updated(self, evt):
        assignment = self._sync_task(evt.new)
        if assignment.status is AssignmentStatus.COMPLETED:
            self.toasts.task_completed()
        elif assignment.status is AssignmentStatus.REVISION_REQUESTED:
            self.toasts.revision_requested()

    def _task_deleted(self, evt):
        log.debug("Task assignment deleted: %s", evt.old.get("id"))

    def _workflow_inserted(self, evt):
        self.toasts.workflow_updated()
        self.store.dispatch(a.UpdateSyncTime())

    def _workflow_updated(self, evt):
        self.store.dispatch(a.UpdateSyncTime())

    def _profile_changed(self, evt):
        user = User.from_row(evt.new)
        if self.store.state.find_user(user.id) is None:
            self.store.dispatch(a.AddUser(user))
        else:
            self.store.dispatch(a.UpdateUser(user))

    def _profile_deleted(self, evt):
        self.store.dispatch(a.DeleteUser(str(evt.old["id"])))
