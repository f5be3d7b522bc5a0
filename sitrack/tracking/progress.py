# sitrack/tracking/progress.py
"""
Derived fields of a report.

A report's ``progress`` and ``status`` are never ground truth: they are a
function of its assignments and are recomputed on every write and every read.
Only an assignment's own status counts; partially ticked to-do lists do not.
"""
from __future__ import annotations

from typing import Iterable, Optional

from .types import Assignment, AssignmentStatus, Progress, Report, ReportStatus


def _round_half_up(numerator: int, denominator: int) -> int:
    # round(100 * n / d) with .5 going up, without float error
    return (200 * numerator + denominator) // (2 * denominator)


def calculate_progress(assignments: Optional[Iterable[Assignment]]) -> int:
    items = list(assignments or ())
    if not items:
        return 0
    done = sum(1 for a in items if a.status is AssignmentStatus.COMPLETED)
    return _round_half_up(done, len(items))


def determine_status(assignments: Optional[Iterable[Assignment]]) -> ReportStatus:
    items = list(assignments or ())
    if items and all(a.status is AssignmentStatus.COMPLETED for a in items):
        return ReportStatus.COMPLETED
    return ReportStatus.IN_PROGRESS


def derive(assignments: Optional[Iterable[Assignment]]) -> Progress:
    items = list(assignments or ())
    return Progress(progress=calculate_progress(items), status=determine_status(items))


def with_derived(report: Report) -> Report:
    """Return ``report`` with progress/status refreshed from its assignments."""
    d = derive(report.assignments)
    if report.progress == d.progress and report.status is d.status:
        return report
    return report.evolve(progress=d.progress, status=d.status)


def task_progress(assignment: Assignment) -> int:
    """Share of the to-do list ticked off; display only."""
    todo = assignment.todo_list
    if not todo:
        return 0
    done = sum(1 for t in todo if t in assignment.completed_tasks)
    return _round_half_up(done, len(todo))
