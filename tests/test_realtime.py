"""
Tests for the change-event hub, the realtime bridge and the ORM hooks that
feed the hub.
"""

from __future__ import annotations

import pytest

from sitrack.extensions import db
from sitrack.models import Profile, ReportRecord
from sitrack.realtime.bridge import ConnectionStatus, RealtimeBridge, TableCallbacks
from sitrack.realtime.broker import ChangeEvent, Hub, RealtimeUnavailable


class FlakyClient(Hub):
    """Hub that refuses to open a channel for one table."""

    def __init__(self, refuse: str):
        super().__init__()
        self.refuse = refuse
        self.start()

    def channel(self, name):
        if name == f"{self.refuse}_changes":
            raise RealtimeUnavailable(f"cannot join {name}")
        return super().channel(name)


@pytest.fixture
def hub() -> Hub:
    h = Hub()
    h.start()
    return h


class TestHub:
    def test_channel_requires_running_hub(self) -> None:
        with pytest.raises(RealtimeUnavailable):
            Hub().channel("reports_changes")

    def test_on_rejects_unknown_table_and_event(self, hub) -> None:
        ch = hub.channel("x")
        with pytest.raises(ValueError):
            ch.on("INSERT", "letters", print)
        with pytest.raises(ValueError):
            ch.on("UPSERT", "reports", print)

    def test_publish_delivers_matching_bindings_in_order(self, hub) -> None:
        got = []
        hub.channel("reports_changes").on("INSERT", "reports", lambda e: got.append(e.new["id"])).subscribe()
        hub.publish(ChangeEvent("reports", "INSERT", new={"id": "R1"}))
        hub.publish(ChangeEvent("reports", "UPDATE", new={"id": "R1"}))
        hub.publish(ChangeEvent("profiles", "INSERT", new={"id": 1}))
        hub.publish(ChangeEvent("reports", "INSERT", new={"id": "R2"}))
        assert got == ["R1", "R2"]

    def test_failing_callback_does_not_stop_fanout(self, hub) -> None:
        got = []

        def boom(evt):
            raise RuntimeError("bad handler")

        hub.channel("a").on("INSERT", "reports", boom).subscribe()
        hub.channel("b").on("INSERT", "reports", lambda e: got.append(e)).subscribe()
        hub.publish(ChangeEvent("reports", "INSERT", new={"id": "R1"}))
        assert len(got) == 1

    def test_removed_channel_gets_nothing(self, hub) -> None:
        got = []
        ch = hub.channel("c").on("DELETE", "reports", got.append).subscribe()
        hub.remove_channel(ch)
        hub.publish(ChangeEvent("reports", "DELETE", old={"id": "R1"}))
        assert got == [] and not ch.joined

    def test_sse_queue_filters_tables(self, hub) -> None:
        sid = hub.subscribe(["reports"])
        hub.publish(ChangeEvent("profiles", "INSERT", new={"id": 1}))
        hub.publish(ChangeEvent("reports", "INSERT", new={"id": "R1"}))
        payload = hub.poll(sid, timeout=0.1)
        assert payload["table"] == "reports"
        assert payload["eventType"] == "INSERT"
        assert hub.poll(sid, timeout=0.01) is None
        hub.unsubscribe(sid)


class TestBridge:
    def test_subscribe_connects_and_routes(self, hub) -> None:
        inserted, statuses = [], []
        conn = RealtimeBridge(hub).subscribe(
            ["reports", "profiles", "reports"],
            {"reports": TableCallbacks(on_insert=inserted.append)},
            on_status=statuses.append,
        )
        assert conn.is_connected
        assert statuses == [ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED]
        assert [ch.name for ch in conn.subscriptions] == ["profiles_changes", "reports_changes"]

        hub.publish(ChangeEvent("reports", "INSERT", new={"id": "R1"}))
        assert [e.new["id"] for e in inserted] == ["R1"]
        assert conn.last_sync is not None

    def test_dict_callbacks_are_accepted(self, hub) -> None:
        deleted = []
        RealtimeBridge(hub).subscribe(["reports"], {"reports": {"on_delete": deleted.append}})
        hub.publish(ChangeEvent("reports", "DELETE", old={"id": "R1"}))
        assert len(deleted) == 1

    def test_missing_client_ends_disconnected(self) -> None:
        conn = RealtimeBridge(None).subscribe(["reports"])
        assert conn.status is ConnectionStatus.DISCONNECTED
        assert conn.error is not None

    def test_partial_failure_removes_opened_channels(self) -> None:
        client = FlakyClient(refuse="reports")
        conn = RealtimeBridge(client).subscribe(["profiles", "reports", "workflow_history"])
        assert conn.status is ConnectionStatus.DISCONNECTED
        assert conn.subscriptions == []
        assert client.channels == []

    def test_close_removes_channels(self, hub) -> None:
        with RealtimeBridge(hub).subscribe(["reports", "profiles"]) as conn:
            assert len(hub.channels) == 2
        assert hub.channels == []
        assert conn.status is ConnectionStatus.DISCONNECTED


class TestTriggers:
    def _record(self, app):
        events = []
        hub = app.extensions["realtime_hub"]
        for table in ("profiles", "reports"):
            (hub.channel(f"test_{table}")
                .on("INSERT", table, events.append)
                .on("UPDATE", table, events.append)
                .on("DELETE", table, events.append)
                .subscribe())
        return events

    def test_commit_publishes_row_changes(self, app) -> None:
        with app.app_context():
            events = self._record(app)
            rec = db.session.get(ReportRecord, "RPT001")
            rec.hal = "Perpanjangan Kontrak PPPK 2025"
            db.session.commit()
            assert [(e.table, e.type) for e in events] == [("reports", "UPDATE")]
            assert events[0].new["hal"] == "Perpanjangan Kontrak PPPK 2025"
            assert events[0].commit_timestamp

    def test_rollback_publishes_nothing(self, app) -> None:
        with app.app_context():
            events = self._record(app)
            p = Profile(username="tmp", name="Tmp", role="Staff")
            p.set_password("secret1")
            db.session.add(p)
            db.session.flush()
            db.session.rollback()
            assert events == []

    def test_insert_and_delete(self, app) -> None:
        with app.app_context():
            events = self._record(app)
            p = Profile(username="andi", name="Andi", role="Staff")
            p.set_password("secret1")
            db.session.add(p)
            db.session.commit()
            pid = p.id
            db.session.delete(p)
            db.session.commit()
            assert [(e.table, e.type) for e in events] == [("profiles", "INSERT"), ("profiles", "DELETE")]
            assert events[0].new["id"] == pid
            assert events[1].old["username"] == "andi"
