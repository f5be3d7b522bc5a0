# sitrack/tracking/persistence.py
"""
Durable local key-value slot and the store's initial state.

The slot is a single JSON document on disk holding named keys. Reads and
writes are best-effort: a broken file is treated as absent and a failed
write is logged by the caller's store, never raised to the dispatcher.
"""
from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from .state import AppState
from .types import Assignment, AssignmentStatus, Report, Role, User, WorkflowEntry

log = logging.getLogger(__name__)

STORAGE_KEY = "sitrack_app_state"


class LocalSlot:
    """A JSON file behaving like a tiny key-value store."""

    def __init__(self, path: os.PathLike | str):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read_all(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: Dict[str, Any]) -> None:
        # temp file then swap; readers never see a partial write
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as fh:
            json.dump(data, fh, ensure_ascii=False)
        os.replace(tmp, self.path)

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return self._read_all().get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            try:
                data = self._read_all()
            except (OSError, ValueError):
                data = {}
            data[key] = value
            self._write_all(data)

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._read_all()
            if data.pop(key, None) is not None:
                self._write_all(data)


class MemorySlot:
    """In-process slot; used when no file path is configured."""

    def __init__(self):
        self._data: Dict[str, Any] = {}

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        # json round-trip keeps the same guarantees as the file slot
        self._data[key] = json.loads(json.dumps(value))

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


# -------------------------
# Seed
# -------------------------
def seed_state() -> AppState:
    """State used when nothing has been persisted yet."""
    report = Report(
        id="RPT001",
        no_surat="001/SDM/2025",
        hal="Perpanjangan Kontrak PPPK",
        status="in-progress",
        layanan="Layanan Perpanjangan Hubungan Kerja PPPK",
        dari="Bagian Kepegawaian",
        tanggal_surat="2025-01-15",
        tanggal_agenda="2025-01-16",
        assignments=[
            Assignment(
                id="ASG001",
                staff_name="Roza Erlinda",
                todo_list=["Jadwalkan/Agendakan", "Bahas dengan saya", "Untuk ditindaklanjuti"],
                completed_tasks=["Jadwalkan/Agendakan"],
                progress=33,
                status=AssignmentStatus.IN_PROGRESS,
                notes="Verifikasi dokumen SK PPPK dan perjanjian kerja",
                assigned_at="2025-01-16T09:00:00.000Z",
            ),
        ],
        assigned_staff=["Roza Erlinda"],
        assigned_coordinators=["Suwarti, S.H"],
        current_holder="Suwarti, S.H",
        progress=33,
        workflow=[
            WorkflowEntry("w1", "Dibuat oleh TU Staff", "TU Staff", "2025-01-16T08:00:00.000Z"),
            WorkflowEntry("w2", "Diteruskan ke Koordinator", "TU Staff", "2025-01-16T08:30:00.000Z"),
            WorkflowEntry("w3", "Staff ditugaskan: Roza Erlinda", "Suwarti, S.H", "2025-01-16T09:00:00.000Z"),
        ],
    )
    return AppState(
        users=(User(id="admin1", name="Administrator", password="admin123", role=Role.ADMIN),),
        reports=(report,),
    )


def load_initial_state(slot, key: str = STORAGE_KEY) -> AppState:
    """Read the persisted snapshot, or fall back to the seed."""
    try:
        saved = slot.get(key) if slot is not None else None
        if saved:
            return AppState.from_snapshot(saved)
    except Exception:
        log.exception("Error loading saved state from %s", key)
    return seed_state()
