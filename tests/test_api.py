"""
End-to-end tests of the role dashboards over HTTP.

Every logged-in client owns a tracking session connected to the in-process
realtime hub, so writes by one role show up in the others' state.
"""

from __future__ import annotations

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from sitrack.extensions import db
from sitrack.models import Profile, ReportRecord, WorkflowRecord
from sitrack.sessions import shutdown


def _state(client) -> dict:
    resp = client.get("/api/state")
    assert resp.status_code == 200
    return resp.get_json()


def _report(body: dict, report_id: str):
    return next((r for r in body["state"]["reports"] if r["id"] == report_id), None)


class TestAuth:
    def test_wrong_password(self, client) -> None:
        resp = client.post("/auth/login", json={"username": "admin", "password": "nope"})
        assert resp.status_code == 401

    def test_missing_fields(self, client) -> None:
        resp = client.post("/auth/login", json={"username": "admin"})
        assert resp.status_code == 400
        assert "password" in resp.get_json()["errors"]

    def test_login_whoami_logout(self, login) -> None:
        c = login("koordinator")
        me = c.get("/auth/whoami").get_json()
        assert me["user"]["name"] == "Suwarti, S.H"
        assert me["role"] == "Koordinator"
        assert me["isConnected"] is True

        assert c.post("/auth/logout").status_code == 200
        assert c.get("/api/state").status_code == 401

    def test_anonymous_is_rejected(self, client) -> None:
        assert client.get("/api/state").status_code == 401
        assert client.get("/api/realtime/status").status_code == 401


class TestState:
    def test_seed_report_is_derived(self, login) -> None:
        body = _state(login("admin"))
        rpt = _report(body, "RPT001")
        assert rpt["progress"] == 0
        assert rpt["status"] == "Dalam Proses"
        assert body["isConnected"] is True
        assert "Data Tersinkronisasi" in [t["message"] for t in body["toasts"]]

    def test_toasts_are_drained(self, login) -> None:
        c = login("admin")
        _state(c)
        assert _state(c)["toasts"] == []

    def test_staff_sees_only_own_reports(self, login) -> None:
        items = login("staff").get("/api/reports").get_json()["items"]
        assert [r["id"] for r in items] == ["RPT001"]
        tu_items = login("tu").get("/api/reports").get_json()["items"]
        assert "RPT001" in [r["id"] for r in tu_items]

    def test_get_unknown_report(self, login) -> None:
        assert login("tu").get("/api/reports/RPT999").status_code == 404


class TestWorkflow:
    def test_tu_creates_and_forwards(self, app, login) -> None:
        koordinator = login("koordinator")
        tu = login("tu")

        resp = tu.post("/api/reports", json={
            "noSurat": "002/KEU/2025", "hal": "Pencairan Tunjangan",
            "layanan": "Layanan Keuangan", "dari": "Bagian Keuangan",
            "tanggalSurat": "2025-02-01", "tanggalAgenda": "2025-02-02",
        })
        assert resp.status_code == 201
        item = resp.get_json()["item"]
        assert item["id"] == "RPT002"
        assert item["workflow"][0]["action"] == "Dibuat oleh TU Staff"

        resp = tu.post("/api/reports/RPT002/forward", json={"coordinator": "Suwarti, S.H"})
        assert resp.status_code == 200
        assert resp.get_json()["item"]["currentHolder"] == "Suwarti, S.H"

        # delivered to the coordinator through the realtime hub
        rpt = _report(_state(koordinator), "RPT002")
        assert rpt is not None and rpt["hal"] == "Pencairan Tunjangan"

        with app.app_context():
            assert WorkflowRecord.query.filter_by(report_id="RPT002").count() == 2

    def test_create_requires_fields(self, login) -> None:
        resp = login("tu").post("/api/reports", json={"hal": "Tanpa nomor"})
        assert resp.status_code == 400
        assert "noSurat" in resp.get_json()["errors"]

    def test_staff_cannot_create(self, login) -> None:
        resp = login("staff").post("/api/reports", json={"noSurat": "x", "hal": "y"})
        assert resp.status_code == 403

    def test_assign_toggle_complete(self, app, login) -> None:
        koordinator = login("koordinator")
        staff = login("staff")

        resp = koordinator.post("/api/reports/RPT001/assignments", json={
            "staffName": "Andi", "todoList": ["Periksa berkas"], "notes": "Segera",
        })
        assert resp.status_code == 201
        report = resp.get_json()["item"]
        assert len(report["assignments"]) == 2
        assert report["progress"] == 0

        resp = staff.post("/api/assignments/ASG001/tasks", json={"task": "Bahas dengan saya", "done": True})
        assert resp.status_code == 200
        assert resp.get_json()["item"]["completedTasks"] == ["Jadwalkan/Agendakan", "Bahas dengan saya"]
        assert resp.get_json()["item"]["progress"] == 67

        resp = staff.post("/api/assignments/ASG001/complete")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["item"]["status"] == "completed"
        assert body["report"]["progress"] == 50
        assert body["report"]["status"] == "Dalam Proses"

        with app.app_context():
            rec = db.session.get(ReportRecord, "RPT001")
            assert rec.progress == 50
            assert rec.workflow[-1].action == "Tugas diselesaikan oleh Roza Erlinda"

    def test_duplicate_assignment_conflicts(self, login) -> None:
        resp = login("koordinator").post("/api/reports/RPT001/assignments", json={
            "staffName": "Roza Erlinda", "todoList": ["Lagi"],
        })
        assert resp.status_code == 409

    def test_staff_cannot_touch_others_assignment(self, app, login) -> None:
        koordinator = login("koordinator")
        koordinator.post("/api/reports/RPT001/assignments", json={"staffName": "Andi", "todoList": ["A"]})
        with app.app_context():
            rec = db.session.get(ReportRecord, "RPT001")
            andi = next(a for a in rec.assignments if a.staff_name == "Andi")
            andi_id = andi.id
        resp = login("staff").post(f"/api/assignments/{andi_id}/complete")
        assert resp.status_code == 403

    def test_request_revision(self, login) -> None:
        koordinator = login("koordinator")
        resp = koordinator.post("/api/reports/RPT001/revision", json={
            "staffName": "Roza Erlinda", "revisionNotes": "Lampirkan SK terbaru",
        })
        assert resp.status_code == 200
        item = resp.get_json()["item"]
        asg = item["assignments"][0]
        assert asg["status"] == "revision-requested"
        assert asg["revisionNotes"] == "Lampirkan SK terbaru"
        assert item["workflow"][-1]["action"] == "Revisi diminta untuk Roza Erlinda"

    def test_revision_for_unknown_staff(self, login) -> None:
        resp = login("koordinator").post("/api/reports/RPT001/revision", json={
            "staffName": "Nobody", "revisionNotes": "x",
        })
        assert resp.status_code == 404

    def test_attach_uploaded_file(self, login) -> None:
        tu = login("tu")
        uploaded = {
            "id": "mock-1", "fileName": "surat.pdf", "fileUrl": "https://example.com/mock-files/surat.pdf",
            "uploadedAt": "2025-01-16T08:00:00.000Z", "uploadedBy": "TU Staff", "type": "original",
        }
        resp = tu.post("/api/reports/RPT001/files", json={"files": [uploaded]})
        assert resp.status_code == 200
        files = resp.get_json()["item"]["originalFiles"]
        assert [f["fileName"] for f in files] == ["surat.pdf"]

    def test_admin_deletes_report(self, app, login) -> None:
        staff = login("staff")
        resp = login("admin").delete("/api/reports/RPT001")
        assert resp.status_code == 200
        with app.app_context():
            assert db.session.get(ReportRecord, "RPT001") is None
        assert _report(_state(staff), "RPT001") is None

    def test_report_deleted_while_logged_out_is_gone_after_relogin(self, login) -> None:
        koordinator = login("koordinator")
        assert _report(_state(koordinator), "RPT001") is not None
        assert koordinator.post("/auth/logout").status_code == 200
        assert login("admin").delete("/api/reports/RPT001").status_code == 200
        koordinator = login("koordinator")
        assert _report(_state(koordinator), "RPT001") is None
        assert koordinator.get("/api/reports/RPT001").status_code == 404

    def test_remote_failure_leaves_state_untouched(self, login, monkeypatch) -> None:
        tu = login("tu")
        _state(tu)

        def failing_commit(self):
            raise OperationalError("INSERT", {}, Exception("database is locked"))

        monkeypatch.setattr(Session, "commit", failing_commit)
        resp = tu.post("/api/reports", json={"noSurat": "003/X/2025", "hal": "Gagal"})
        monkeypatch.undo()

        assert resp.status_code == 500
        assert resp.get_json()["error"] == "Gagal membuat laporan"
        body = _state(tu)
        assert [r["id"] for r in body["state"]["reports"]] == ["RPT001"]
        assert "Gagal membuat laporan" in [t["message"] for t in body["toasts"]]


class TestUsers:
    def test_admin_creates_user(self, login) -> None:
        admin = login("admin")
        resp = admin.post("/api/users", json={
            "username": "andi", "name": "Andi Pratama", "role": "Staff", "password": "rahasia1",
        })
        assert resp.status_code == 201
        names = [u["name"] for u in _state(admin)["state"]["users"]]
        assert names.count("Andi Pratama") == 1

    def test_duplicate_username(self, login) -> None:
        resp = login("admin").post("/api/users", json={
            "username": "staff", "name": "X", "role": "Staff", "password": "rahasia1",
        })
        assert resp.status_code == 400
        assert "username" in resp.get_json()["errors"]

    def test_invalid_role(self, login) -> None:
        resp = login("admin").post("/api/users", json={
            "username": "x1", "name": "X", "role": "Boss", "password": "rahasia1",
        })
        assert resp.status_code == 400

    def test_update_and_delete(self, app, login) -> None:
        admin = login("admin")
        with app.app_context():
            staff_id = Profile.query.filter_by(username="staff").first().id
            admin_id = Profile.query.filter_by(username="admin").first().id

        resp = admin.put(f"/api/users/{staff_id}", json={"name": "Roza E."})
        assert resp.status_code == 200
        assert resp.get_json()["item"]["name"] == "Roza E."
        assert resp.get_json()["item"]["role"] == "Staff"

        assert admin.delete(f"/api/users/{admin_id}").status_code == 400
        assert admin.delete(f"/api/users/{staff_id}").status_code == 200
        ids = [u["id"] for u in _state(admin)["state"]["users"]]
        assert str(staff_id) not in ids

    def test_non_admin_forbidden(self, login) -> None:
        assert login("tu").get("/api/users").status_code == 403


class TestPublicTracking:
    def test_blank_query(self, client) -> None:
        resp = client.get("/api/tracking?q=")
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Mohon masukkan nomor surat"

    def test_not_found(self, client) -> None:
        assert client.get("/api/tracking?q=999/ZZZ").status_code == 404

    def test_found_without_login(self, client) -> None:
        resp = client.get("/api/tracking?q=001/sdm")
        assert resp.status_code == 200
        item = resp.get_json()["item"]
        assert item["id"] == "RPT001"
        assert item["progress"] == 0
        assert item["currentLocation"] == "Tata Usaha"
        assert len(item["timeline"]) == 5


class TestRealtimeStatus:
    def test_status_lists_session_channels(self, login) -> None:
        body = login("admin").get("/api/realtime/status").get_json()
        assert body["running"] is True
        assert "reports_changes" in body["channels"]

    def test_stream_rejects_unknown_table(self, login) -> None:
        resp = login("admin").get("/api/realtime/stream?tables=letters")
        assert resp.status_code == 400

    def test_shutdown_closes_sessions_and_background_workers(self, app, login) -> None:
        login("koordinator")
        sched = BackgroundScheduler(daemon=True, timezone="UTC")
        sched.start()
        app.extensions["scheduler"] = sched
        shutdown(app)
        assert app.extensions["tracking_sessions"] == {}
        assert "scheduler" not in app.extensions and not sched.running
        assert app.extensions["realtime_hub"].running is False
        # a second call at interpreter exit is harmless
        shutdown(app)
