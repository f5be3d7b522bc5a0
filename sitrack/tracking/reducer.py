# sitrack/tracking/reducer.py
"""
Pure state transitions.

``reduce(state, action, now)`` never mutates ``state`` and never raises for
one of the known actions. ``now`` is the ISO timestamp stamped on anything
the action records (sync time, revision time, workflow entries).
"""
from __future__ import annotations

from dataclasses import replace
from functools import singledispatch
from typing import Callable, Iterable, Tuple, TypeVar

from . import actions as a
from .progress import with_derived
from .state import AppState
from .types import AssignmentStatus, Report, WorkflowEntry

T = TypeVar("T")

DEFAULT_REVIEWER = "Koordinator"


def upsert(items: Iterable[T], item: T, key: Callable[[T], str] = lambda x: x.id) -> Tuple[T, ...]:
    """Replace the element with the same key in place, or append it."""
    out, found = [], False
    k = key(item)
    for cur in items:
        if key(cur) == k:
            out.append(item)
            found = True
        else:
            out.append(cur)
    if not found:
        out.append(item)
    return tuple(out)


def _without(items, ident: str) -> tuple:
    return tuple(x for x in items if x.id != ident)


def _replace_existing(items, item) -> tuple:
    return tuple(item if x.id == item.id else x for x in items)


@singledispatch
def _apply(action, state: AppState, now: str) -> AppState:
    return state


def reduce(state: AppState, action: "a.Action", now: str) -> AppState:
    return _apply(action, state, now)


# -------------------------
# Session
# -------------------------
@_apply.register
def _(action: a.Login, state, now):
    return state.evolve(current_user=action.user, is_authenticated=True)


@_apply.register
def _(action: a.Logout, state, now):
    return state.evolve(current_user=None, is_authenticated=False)


# -------------------------
# Users
# -------------------------
@_apply.register
def _(action: a.AddUser, state, now):
    return state.evolve(users=upsert(state.users, action.user))


@_apply.register
def _(action: a.UpdateUser, state, now):
    users = _replace_existing(state.users, action.user)
    current = state.current_user
    if current is not None and current.id == action.user.id:
        current = action.user
    return state.evolve(users=users, current_user=current)


@_apply.register
def _(action: a.DeleteUser, state, now):
    return state.evolve(users=_without(state.users, action.user_id))


# -------------------------
# Reports
# -------------------------
@_apply.register
def _(action: a.AddReport, state, now):
    return state.evolve(reports=upsert(state.reports, with_derived(action.report)))


@_apply.register
def _(action: a.UpdateReport, state, now):
    return state.evolve(reports=_replace_existing(state.reports, with_derived(action.report)))


@_apply.register
def _(action: a.DeleteReport, state, now):
    return state.evolve(reports=_without(state.reports, action.report_id))


@_apply.register
def _(action: a.RequestRevision, state, now):
    actor = state.current_user.name if state.current_user else DEFAULT_REVIEWER

    def revise(report: Report) -> Report:
        assignments = tuple(
            replace(x,
                    status=AssignmentStatus.REVISION_REQUESTED,
                    revision_notes=action.revision_notes,
                    revision_requested_at=now)
            if x.staff_name == action.staff_name else x
            for x in report.assignments
        )
        entry = WorkflowEntry(
            id=f"w{len(report.workflow) + 1}",
            action=f"Revisi diminta untuk {action.staff_name}",
            user=actor,
            timestamp=now,
            status="completed",
        )
        return with_derived(report.evolve(assignments=assignments,
                                          workflow=report.workflow + (entry,)))

    reports = tuple(revise(r) if r.id == action.report_id else r for r in state.reports)
    return state.evolve(reports=reports)


# -------------------------
# Connection / sync
# -------------------------
@_apply.register
def _(action: a.SetConnectionStatus, state, now):
    return state.evolve(is_connected=bool(action.connected))


@_apply.register
def _(action: a.UpdateSyncTime, state, now):
    return state.evolve(last_sync_time=now)


@_apply.register
def _(action: a.SyncReportFromRemote, state, now):
    return state.evolve(reports=upsert(state.reports, with_derived(action.report)),
                        last_sync_time=now)


@_apply.register
def _(action: a.SyncTaskFromRemote, state, now):
    """Replace the assignment in its report, or append it when the id is new.

    Appending covers task rows that arrive before the parent report refresh.
    An unknown report id leaves the state unchanged.
    """
    reports = tuple(
        with_derived(r.evolve(assignments=upsert(r.assignments, action.assignment)))
        if r.id == action.report_id else r
        for r in state.reports
    )
    return state.evolve(reports=reports, last_sync_time=now)
