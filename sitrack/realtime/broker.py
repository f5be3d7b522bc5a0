# sitrack/realtime/broker.py
"""
In-process change-event hub.

Plays the part of the managed realtime service: the ORM hooks in
``triggers.py`` publish one ``ChangeEvent`` per committed row change, and
consumers attach either as channels (``channel(...).on(...).subscribe()``)
or as SSE queues (``subscribe`` / ``poll``).

Events are fanned out synchronously on the publishing thread, so every
channel sees the events of one table in commit order.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from queue import Empty, Full, Queue
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

log = logging.getLogger(__name__)

TRACKED_TABLES = ("profiles", "reports", "task_assignments", "workflow_history", "file_attachments")
EVENT_TYPES = ("INSERT", "UPDATE", "DELETE")


class RealtimeUnavailable(RuntimeError):
    """The hub is not running (disabled or stopped)."""


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    type: str
    new: Dict[str, Any] = field(default_factory=dict)
    old: Dict[str, Any] = field(default_factory=dict)
    commit_timestamp: str = ""

    def to_payload(self) -> Dict[str, Any]:
        return {
            "table": self.table,
            "eventType": self.type,
            "new": self.new,
            "old": self.old,
            "commit_timestamp": self.commit_timestamp,
        }


class Channel:
    """A named set of (event, table) -> callback bindings."""

    def __init__(self, hub: "Hub", name: str):
        self.hub = hub
        self.name = name
        self.joined = False
        self._bindings: List[Tuple[str, str, Callable[[ChangeEvent], None]]] = []

    def on(self, event: str, table: str, callback: Callable[[ChangeEvent], None]) -> "Channel":
        event = event.upper()
        if event not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {event}")
        if table not in self.hub.tables:
            raise ValueError(f"Unknown table: {table}")
        self._bindings.append((event, table, callback))
        return self

    def subscribe(self) -> "Channel":
        self.hub._attach(self)
        self.joined = True
        return self

    def deliver(self, evt: ChangeEvent) -> None:
        for event, table, cb in self._bindings:
            if event == evt.type and table == evt.table:
                cb(evt)


class Hub:
    def __init__(self, tables: Iterable[str] = TRACKED_TABLES, queue_size: int = 1000):
        self.tables = tuple(tables)
        self.queue_size = queue_size
        self._channels: List[Channel] = []
        self._subs: Dict[str, Tuple[Queue, Optional[frozenset]]] = {}
        self._lock = threading.Lock()
        self._running = False

    # -------------------------
    # Lifecycle
    # -------------------------
    def start(self):
        self._running = True

    def stop(self):
        self._running = False
        with self._lock:
            channels = list(self._channels)
            self._channels.clear()
        for ch in channels:
            ch.joined = False

    @property
    def running(self) -> bool:
        return self._running

    # -------------------------
    # Channels
    # -------------------------
    def channel(self, name: str) -> Channel:
        if not self._running:
            raise RealtimeUnavailable("realtime hub is not running")
        return Channel(self, name)

    def _attach(self, ch: Channel):
        if not self._running:
            raise RealtimeUnavailable("realtime hub is not running")
        with self._lock:
            if ch not in self._channels:
                self._channels.append(ch)

    def remove_channel(self, ch: Channel):
        with self._lock:
            if ch in self._channels:
                self._channels.remove(ch)
        ch.joined = False

    @property
    def channels(self) -> List[Channel]:
        with self._lock:
            return list(self._channels)

    # -------------------------
    # SSE queues
    # -------------------------
    def subscribe(self, tables: Optional[Iterable[str]] = None) -> str:
        q = Queue(maxsize=self.queue_size)
        sid = f"s_{time.time_ns()}"
        with self._lock:
            self._subs[sid] = (q, frozenset(tables) if tables else None)
        return sid

    def unsubscribe(self, sid: str):
        with self._lock:
            self._subs.pop(sid, None)

    def poll(self, sid: str, timeout=15.0) -> Optional[Dict[str, Any]]:
        with self._lock:
            entry = self._subs.get(sid)
        if not entry:
            return None
        try:
            return entry[0].get(timeout=timeout)
        except Empty:
            return None

    # -------------------------
    # Fan-out
    # -------------------------
    def publish(self, evt: ChangeEvent):
        if not self._running:
            return
        if not evt.commit_timestamp:
            evt = ChangeEvent(evt.table, evt.type, evt.new, evt.old,
                              datetime.now(timezone.utc).isoformat())
        with self._lock:
            channels = list(self._channels)
            queues = list(self._subs.values())

        for ch in channels:
            try:
                ch.deliver(evt)
            except Exception:
                log.exception("Realtime callback failed on channel %s", ch.name)

        payload = evt.to_payload()
        for q, tables in queues:
            if tables is not None and evt.table not in tables:
                continue
            try:
                q.put_nowait(payload)
            except Full:
                # slow SSE client: drop the event for that client only
                log.debug("Dropping %s event for a full SSE queue", evt.table)
