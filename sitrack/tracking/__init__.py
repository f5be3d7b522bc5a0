"""
Workflow/state synchronization layer.

    types      - immutable domain records
    progress   - derived progress/status
    actions    - the closed set of store actions
    reducer    - pure state transitions
    store      - the serialized, persisted state container
    session    - store + realtime wiring for one logged-in user
"""
from .actions import (  # noqa: F401
    Action, Login, Logout, AddUser, UpdateUser, DeleteUser,
    AddReport, UpdateReport, DeleteReport, RequestRevision,
    SetConnectionStatus, UpdateSyncTime, SyncReportFromRemote, SyncTaskFromRemote,
)
from .progress import derive, calculate_progress, determine_status, with_derived  # noqa: F401
from .state import AppState  # noqa: F401
from .store import Store  # noqa: F401
