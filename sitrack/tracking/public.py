# sitrack/tracking/public.py
"""Public letter tracking: lookup plus a coarse, progress-driven timeline."""
from __future__ import annotations

import math
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional

from .progress import with_derived
from .types import Report
from sitrack.utils.tz import format_id_date

STEPS = (
    # (step, location, description, completed at >= progress)
    ("Surat Diterima", "Tata Usaha", "Surat masuk dan didaftarkan dalam sistem", 0),
    ("Verifikasi Dokumen", "Koordinator", "Pemeriksaan kelengkapan dan validitas dokumen", 25),
    ("Penugasan Staff", "Staff Pelaksana", "Surat ditugaskan kepada staff untuk diproses", 50),
    ("Proses Pelayanan", "Unit Pelayanan", "Pelaksanaan layanan sesuai jenis permohonan", 75),
    ("Selesai", "Selesai", "Surat telah selesai diproses dan siap diambil", 100),
)

# days before today each step is shown as completed
STEP_AGE_DAYS = (7, 5, 3, 1, 0)


def find_report(reports: Iterable[Report], query: str) -> Optional[Report]:
    """Case-insensitive partial match on letter number or subject, or id containment."""
    raw = (query or "").strip()
    if not raw:
        return None
    needle = raw.lower()
    for r in reports:
        if needle in (r.no_surat or "").lower() or needle in (r.hal or "").lower() or raw in r.id:
            return r
    return None


def current_location(progress: int) -> str:
    if progress >= 100:
        return "Selesai - Siap Diambil"
    if progress >= 75:
        return "Unit Pelayanan"
    if progress >= 50:
        return "Staff Pelaksana"
    if progress >= 25:
        return "Koordinator"
    return "Tata Usaha"


def estimated_completion(progress: int, today: date) -> str:
    if progress >= 100:
        return "Sudah Selesai"
    days = math.ceil((100 - progress) / 20)
    return format_id_date(today + timedelta(days=days))


def _step_status(progress: int, threshold: int, index: int) -> str:
    if progress >= threshold:
        return "completed"
    # the step right after the last completed one is the active one
    prev_threshold = STEPS[index - 1][3] if index > 0 else 0
    if index < 4 and progress >= prev_threshold:
        return "in-progress"
    return "pending"


def timeline(report: Report, today: date) -> List[Dict[str, Any]]:
    progress = report.progress
    notes = "; ".join(a.notes for a in report.assignments if a.notes) or None
    out = []
    for i, (step, location, description, threshold) in enumerate(STEPS):
        status = _step_status(progress, threshold, i)
        d = today - timedelta(days=STEP_AGE_DAYS[i]) if status == "completed" else None
        item = {
            "step": step,
            "status": status,
            "date": format_id_date(d) if d else None,
            "location": location,
            "description": description,
        }
        if step == "Penugasan Staff":
            item["notes"] = notes
        out.append(item)
    return out


def tracking_result(report: Report, today: date) -> Dict[str, Any]:
    report = with_derived(report)
    out = report.to_dict()
    out.update({
        "timeline": timeline(report, today),
        "currentLocation": current_location(report.progress),
        "estimatedCompletion": estimated_completion(report.progress, today),
    })
    return out
