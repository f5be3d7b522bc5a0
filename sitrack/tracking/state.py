# sitrack/tracking/state.py
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Tuple

from .progress import with_derived
from .types import Report, User


@dataclass(frozen=True)
class AppState:
    current_user: Optional[User] = None
    users: Tuple[User, ...] = ()
    reports: Tuple[Report, ...] = ()
    is_authenticated: bool = False
    # transient, never persisted
    is_connected: bool = False
    last_sync_time: Optional[str] = None

    def evolve(self, **changes) -> "AppState":
        return replace(self, **changes)

    def find_report(self, report_id: str) -> Optional[Report]:
        return next((r for r in self.reports if r.id == report_id), None)

    def find_user(self, user_id: str) -> Optional[User]:
        return next((u for u in self.users if u.id == user_id), None)

    def derived(self) -> "AppState":
        """Read-path view: every report re-derived from its assignments."""
        return replace(self, reports=tuple(with_derived(r) for r in self.reports))

    # -------------------------
    # Serialization
    # -------------------------
    def snapshot(self) -> Dict[str, Any]:
        return {
            "users": [u.to_dict() for u in self.users],
            "reports": [r.to_dict() for r in self.reports],
            "currentUser": self.current_user.to_dict() if self.current_user else None,
            "isAuthenticated": self.is_authenticated,
        }

    def to_dict(self) -> Dict[str, Any]:
        out = self.snapshot()
        out["isConnected"] = self.is_connected
        out["lastSyncTime"] = self.last_sync_time
        return out

    @classmethod
    def from_snapshot(cls, data: Dict[str, Any]) -> "AppState":
        current = data.get("currentUser")
        return cls(
            current_user=User.from_dict(current) if current else None,
            users=tuple(User.from_dict(u) for u in data.get("users") or ()),
            reports=tuple(Report.from_dict(r) for r in data.get("reports") or ()),
            is_authenticated=bool(data.get("isAuthenticated", False)),
        )
