# sitrack/notifications/toasts.py
"""
Toast notifications.

Each tracking session owns a ``ToastCenter``: a bounded queue of short
messages the client drains through ``GET /api/state``. ``TrackingToasts``
holds the catalogue of workflow messages.
"""
from __future__ import annotations

import itertools
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sitrack.utils.tz import utc_now_iso

log = logging.getLogger(__name__)

# display duration per level, milliseconds
DURATIONS = {
    "success": 5000,
    "error":   6000,
    "info":    4000,
    "warning": 5000,
}


@dataclass(frozen=True)
class ToastAction:
    label: str
    href: Optional[str] = None


@dataclass(frozen=True)
class Toast:
    id: int
    level: str
    message: str
    description: Optional[str] = None
    action: Optional[ToastAction] = None
    duration: int = 4000
    created_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "level": self.level,
            "message": self.message,
            "description": self.description,
            "action": ({"label": self.action.label, "href": self.action.href}
                       if self.action else None),
            "duration": self.duration,
            "createdAt": self.created_at,
        }


class ToastCenter:
    def __init__(self, maxlen: int = 50):
        self._queue: deque = deque(maxlen=maxlen)
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def push(self, level: str, message: str, description: Optional[str] = None,
             action: Optional[ToastAction] = None) -> Toast:
        if level not in DURATIONS:
            raise ValueError(f"Unknown toast level: {level}")
        with self._lock:
            toast = Toast(next(self._ids), level, message, description, action, DURATIONS[level])
            self._queue.append(toast)
        log.info("[toast:%s] %s", level, message)
        return toast

    def success(self, message, description=None, action=None) -> Toast:
        return self.push("success", message, description, action)

    def error(self, message, description=None, action=None) -> Toast:
        return self.push("error", message, description, action)

    def info(self, message, description=None, action=None) -> Toast:
        return self.push("info", message, description, action)

    def warning(self, message, description=None, action=None) -> Toast:
        return self.push("warning", message, description, action)

    def pending(self) -> List[Toast]:
        with self._lock:
            return list(self._queue)

    def drain(self) -> List[Toast]:
        with self._lock:
            items = list(self._queue)
            self._queue.clear()
        return items

    def __len__(self) -> int:
        return len(self._queue)


class TrackingToasts:
    """Workflow messages shown to dashboard users."""

    def __init__(self, center: ToastCenter):
        self.center = center

    def report_created(self, report_id: Optional[str] = None):
        action = ToastAction("Lihat Detail", f"/tracking/{report_id}") if report_id else None
        return self.center.success(
            "Laporan Berhasil Dibuat",
            "Laporan telah disimpan dan akan segera diproses oleh tim terkait",
            action,
        )

    def report_updated(self):
        return self.center.success("Laporan Diperbarui", "Semua perubahan telah disimpan dengan sukses")

    def task_assigned(self, staff_name: str):
        return self.center.success(
            "Tugas Berhasil Ditugaskan",
            f"Tugas telah diberikan kepada {staff_name} dan notifikasi telah dikirim",
        )

    def task_completed(self):
        return self.center.success(
            "Tugas Selesai", "Tugas telah diselesaikan dan dikirim ke koordinator untuk review"
        )

    def revision_requested(self):
        return self.center.warning(
            "Revisi Diperlukan",
            "Silakan periksa catatan revisi dan lakukan perbaikan yang diperlukan",
        )

    def workflow_updated(self):
        return self.center.info(
            "Status Workflow Diperbarui",
            "Alur kerja telah diperbarui secara real-time di semua perangkat",
        )

    def connection_error(self):
        return self.center.error(
            "Koneksi Terputus",
            "Sedang mencoba menghubungkan kembali ke server...",
        )

    def sync_success(self):
        return self.center.success(
            "Data Tersinkronisasi",
            "Semua perubahan telah disimpan dan disinkronkan dengan server",
        )

    def user_added(self, user_name: str):
        return self.center.success(
            "Pengguna Berhasil Ditambahkan", f"{user_name} telah berhasil ditambahkan ke sistem"
        )

    def file_uploaded(self, file_name: str):
        return self.center.success(
            "File Berhasil Diunggah", f"{file_name} telah berhasil diunggah dan dilampirkan"
        )

    def operation_failed(self, what: str, detail: str = ""):
        return self.center.error(f"Gagal {what}", detail or "Terjadi kesalahan pada server")
