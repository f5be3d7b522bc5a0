# sitrack/tracking/store.py
"""
Application state container.

One ``Store`` is built per tracking session and handed to whoever needs it;
there is no module-level instance. ``dispatch`` is serialized by a lock so
request handlers and realtime callbacks never reduce concurrently.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from .actions import Action
from .persistence import STORAGE_KEY, load_initial_state
from .reducer import reduce
from .state import AppState
from sitrack.utils.tz import utc_now_iso

log = logging.getLogger(__name__)


class Store:
    def __init__(
        self,
        slot=None,
        key: str = STORAGE_KEY,
        clock: Callable[[], str] = utc_now_iso,
        initial: Optional[AppState] = None,
    ):
        self.slot = slot
        self.key = key
        self._clock = clock
        self._lock = threading.RLock()
        state = initial if initial is not None else load_initial_state(slot, key)
        # connection flags never survive a restart
        self._state = state.evolve(is_connected=False, last_sync_time=None)

    @property
    def state(self) -> AppState:
        return self._state

    def view(self) -> AppState:
        """State as displayed: derived fields recomputed from assignments."""
        return self._state.derived()

    def dispatch(self, action: Action) -> AppState:
        with self._lock:
            new_state = reduce(self._state, action, self._clock())
            self._state = new_state
            self._persist(new_state)
        return new_state

    def _persist(self, state: AppState) -> None:
        if self.slot is None:
            return
        try:
            self.slot.set(self.key, state.snapshot())
        except Exception:
            log.exception("Error saving state to %s", self.key)
