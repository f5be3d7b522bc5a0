# sitrack/auth/routes.py
from flask import jsonify, current_app
from flask_login import login_user, logout_user, login_required, current_user

from . import bp
from .forms import LoginForm
from sitrack.models import Profile
from sitrack.sessions import open_session, close_session, get_session


@bp.post("/login")
def login():
    form = LoginForm()
    if not form.validate():
        return jsonify({"errors": form.errors}), 400

    username = (form.username.data or "").strip()
    profile = Profile.query.filter_by(username=username).first()
    if not profile or not profile.check_password(form.password.data or ""):
        return jsonify({"error": "Nama pengguna atau kata sandi salah"}), 401

    login_user(profile)
    session = open_session(profile)
    current_app.logger.info("Login: %s (%s)", profile.username, profile.role)
    return jsonify({
        "ok": True,
        "user": session.store.state.current_user.to_dict(),
        "isConnected": session.is_connected,
    })


@bp.post("/logout")
@login_required
def logout():
    close_session(current_user.id)
    logout_user()
    return jsonify({"ok": True})


@bp.get("/whoami")
@login_required
def whoami():
    session = get_session(current_user)
    state = session.store.state
    return jsonify({
        "id": current_user.id,
        "username": current_user.username,
        "user": state.current_user.to_dict() if state.current_user else None,
        "role": current_user.role,
        "isConnected": state.is_connected,
        "lastSyncTime": state.last_sync_time,
    })
