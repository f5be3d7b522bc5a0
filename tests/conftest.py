"""Shared pytest fixtures for the test suite.

Fixture overview
----------------
app : application on an in-memory SQLite database, demo data seeded,
      realtime on and set up inline (no scheduler thread)
client : anonymous test client
login : callable logging a client in as one of the demo accounts
make_report : domain Report factory with sensible defaults
"""

from __future__ import annotations

from typing import Callable

import pytest
from flask.testing import FlaskClient

from sitrack import create_app
from sitrack.cli import seed_demo_data
from sitrack.extensions import db
from sitrack.sessions import close_all
from sitrack.tracking.types import Assignment, AssignmentStatus, Report

DEMO_PASSWORDS = {
    "admin": "admin123",
    "tu": "tu123",
    "koordinator": "koordinator123",
    "staff": "staff123",
}


# ── Application ──────────────────────────────────────────────────────────────


@pytest.fixture
def app(tmp_path):
    """Fresh app per test: in-memory DB, per-test local state file."""
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "LOCAL_STATE_PATH": str(tmp_path / "local_state.json"),
        "BLOB_READ_WRITE_TOKEN": None,
        "REALTIME_ENABLED": True,
        "REALTIME_SETUP_DELAY": 0,
        "SCHEDULER_ENABLED": False,
    })
    with app.app_context():
        seed_demo_data()
    yield app
    close_all(app)
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app) -> FlaskClient:
    return app.test_client()


@pytest.fixture
def login(app) -> Callable[[str], FlaskClient]:
    """Return a function that gives a fresh client logged in as ``username``."""

    def _login(username: str) -> FlaskClient:
        c = app.test_client()
        resp = c.post("/auth/login", json={"username": username, "password": DEMO_PASSWORDS[username]})
        assert resp.status_code == 200, resp.get_json()
        return c

    return _login


# ── Domain primitives ────────────────────────────────────────────────────────


def assignment(ident: str, status: AssignmentStatus = AssignmentStatus.PENDING,
               staff: str = "Roza Erlinda", **kw) -> Assignment:
    return Assignment(id=ident, staff_name=staff, status=status, **kw)


@pytest.fixture
def make_report() -> Callable[..., Report]:
    """Report factory: ``make_report("RPT9", assignments=[...])``."""

    def _make(ident: str = "RPT900", **kw) -> Report:
        kw.setdefault("no_surat", f"{ident}/SDM/2025")
        kw.setdefault("hal", "Permohonan Cuti")
        return Report(id=ident, **kw)

    return _make
