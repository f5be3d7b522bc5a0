# sitrack/tracking/reconcile.py
"""
Merging remote rows into the local cache.

A change event for ``reports`` carries the report's own columns only. The
nested collections the local cache already holds (assignments, workflow,
files) are kept unless the row brings its own copy. The result feeds an
upsert-by-id, so applying the same row twice is a no-op.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from .types import Report

_NESTED = {
    "assignments": ("assignments",),
    "workflow": ("workflow",),
    "original_files": ("original_files", "originalFiles"),
}


def merge_remote_report(local: Optional[Report], row: Dict[str, Any]) -> Report:
    incoming = Report.from_row(row)
    if local is None:
        return incoming
    keep = {
        attr: getattr(local, attr)
        for attr, keys in _NESTED.items()
        if not any(k in row for k in keys)
    }
    return incoming.evolve(**keep) if keep else incoming
