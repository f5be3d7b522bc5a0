# sitrack/realtime/bridge.py
"""
Realtime bridge: one subscription per table, translated into caller callbacks.

The bridge never retries. If the client cannot be reached, or refuses one of
the requested tables, the whole connection ends up DISCONNECTED and every
channel opened so far is removed again.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from sitrack.utils.tz import utc_now_iso

log = logging.getLogger(__name__)

Callback = Callable[[Any], None]


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING   = "connecting"
    CONNECTED    = "connected"


@dataclass(frozen=True)
class TableCallbacks:
    on_insert: Optional[Callback] = None
    on_update: Optional[Callback] = None
    on_delete: Optional[Callback] = None

    @classmethod
    def coerce(cls, value: Union["TableCallbacks", Mapping[str, Callback], None]) -> "TableCallbacks":
        if isinstance(value, cls):
            return value
        value = dict(value or {})
        return cls(
            on_insert=value.get("on_insert"),
            on_update=value.get("on_update"),
            on_delete=value.get("on_delete"),
        )


class RealtimeConnection:
    """Handle returned by ``RealtimeBridge.subscribe``; owns its channels."""

    def __init__(self, client, tables: Iterable[str],
                 on_status: Optional[Callable[[ConnectionStatus], None]] = None,
                 clock: Callable[[], str] = utc_now_iso):
        self.client = client
        self.tables = tuple(tables)
        self.status = ConnectionStatus.DISCONNECTED
        self.last_sync: Optional[str] = None
        self.error: Optional[BaseException] = None
        self._channels: List[Any] = []
        self._on_status = on_status
        self._clock = clock

    @property
    def is_connected(self) -> bool:
        return self.status is ConnectionStatus.CONNECTED

    @property
    def subscriptions(self) -> List[Any]:
        return list(self._channels)

    def _set_status(self, status: ConnectionStatus):
        if status is self.status:
            return
        self.status = status
        if self._on_status is not None:
            self._on_status(status)

    def _wrap(self, cb: Optional[Callback]) -> Callback:
        def handler(payload):
            self.last_sync = self._clock()
            if cb is not None:
                cb(payload)
        return handler

    def _open(self, callbacks: Mapping[str, Any]):
        self._set_status(ConnectionStatus.CONNECTING)
        try:
            if self.client is None:
                raise RuntimeError("realtime client is not configured")
            for table in self.tables:
                cbs = TableCallbacks.coerce(callbacks.get(table))
                ch = (
                    self.client.channel(f"{table}_changes")
                    .on("INSERT", table, self._wrap(cbs.on_insert))
                    .on("UPDATE", table, self._wrap(cbs.on_update))
                    .on("DELETE", table, self._wrap(cbs.on_delete))
                    .subscribe()
                )
                self._channels.append(ch)
        except Exception as e:
            log.warning("Realtime subscription setup failed: %s", e)
            self.error = e
            self._remove_all()
            self._set_status(ConnectionStatus.DISCONNECTED)
            return
        self._set_status(ConnectionStatus.CONNECTED)

    def _remove_all(self):
        channels, self._channels = self._channels, []
        for ch in channels:
            try:
                self.client.remove_channel(ch)
            except Exception:
                log.exception("Failed to remove realtime channel %s", getattr(ch, "name", ch))

    def close(self):
        self._remove_all()
        self._set_status(ConnectionStatus.DISCONNECTED)

    def __enter__(self) -> "RealtimeConnection":
        return self

    def __exit__(self, *exc):
        self.close()
        return False


class RealtimeBridge:
    def __init__(self, client, clock: Callable[[], str] = utc_now_iso):
        self.client = client
        self._clock = clock

    def subscribe(
        self,
        tables: Iterable[str],
        callbacks: Optional[Mapping[str, Union[TableCallbacks, Dict[str, Callback]]]] = None,
        on_status: Optional[Callable[[ConnectionStatus], None]] = None,
    ) -> RealtimeConnection:
        # sorted: a set of tables must open in a stable order
        conn = RealtimeConnection(self.client, sorted(set(tables)), on_status=on_status, clock=self._clock)
        conn._open(callbacks or {})
        return conn
