# sitrack/sessions.py
"""
Per-user tracking sessions, kept in ``app.extensions["tracking_sessions"]``.

A session is opened at login (or lazily, when a remembered user comes back)
and closed at logout; its store is persisted under a per-user slot key.
"""
from __future__ import annotations

import logging
import threading

from flask import current_app

from .reports.service import load_remote_state, profile_to_user
from .tracking.persistence import STORAGE_KEY
from .tracking.session import TrackingSession
from .tracking.store import Store

log = logging.getLogger(__name__)

_lock = threading.Lock()


def _registry(app) -> dict:
    return app.extensions.setdefault("tracking_sessions", {})


def _client(app):
    if not app.config.get("REALTIME_ENABLED", True):
        return None
    return app.extensions.get("realtime_hub")


def build_session(app, profile) -> TrackingSession:
    store = Store(slot=app.extensions.get("local_slot"), key=f"{STORAGE_KEY}:{profile.id}")
    return TrackingSession(
        store,
        _client(app),
        tables=app.config["REALTIME_TABLES"],
        scheduler=app.extensions.get("scheduler"),
        setup_delay=app.config["REALTIME_SETUP_DELAY"],
        loader=load_remote_state,
    )


def open_session(profile) -> TrackingSession:
    app = current_app._get_current_object()
    with _lock:
        sessions = _registry(app)
        old = sessions.pop(profile.id, None)
    if old is not None:
        old.stop()
    session = build_session(app, profile)
    with _lock:
        sessions[profile.id] = session
    session.open(profile_to_user(profile))
    log.info("Tracking session opened for %s", profile.username)
    return session


def get_session(profile) -> TrackingSession:
    app = current_app._get_current_object()
    with _lock:
        session = _registry(app).get(profile.id)
    return session if session is not None else open_session(profile)


def close_session(user_id) -> None:
    app = current_app._get_current_object()
    with _lock:
        session = _registry(app).pop(user_id, None)
    if session is not None:
        session.close()
        log.info("Tracking session closed for user %s", user_id)


def close_all(app) -> None:
    with _lock:
        sessions = list(_registry(app).values())
        _registry(app).clear()
    for s in sessions:
        s.stop()


def shutdown(app) -> None:
    """Process-exit teardown: sessions first, then the scheduler and the hub."""
    close_all(app)
    sched = app.extensions.pop("scheduler", None)
    if sched is not None and sched.running:
        sched.shutdown(wait=False)
    hub = app.extensions.get("realtime_hub")
    if hub is not None:
        hub.stop()
    log.info("Tracking sessions shut down")
