# sitrack/users/routes.py
"""
Admin account management.

The profiles table is written first; only after a successful commit is the
matching action dispatched into the caller's store, so local state never
claims an account the data service rejected.
"""
from flask import jsonify, current_app
from flask_login import current_user
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from . import bp
from sitrack.auth.forms import UserForm, UserUpdateForm
from sitrack.decorators import role_required
from sitrack.extensions import db
from sitrack.models import Profile
from sitrack.reports.service import create_profile, update_profile, profile_to_user
from sitrack.sessions import get_session
from sitrack.tracking import actions as a
from sitrack.tracking.types import Role


@bp.get("")
@role_required(Role.ADMIN)
def list_users():
    items = [profile_to_user(p).to_dict() for p in Profile.query.order_by(Profile.id).all()]
    return jsonify({"ok": True, "items": items})


@bp.post("")
@role_required(Role.ADMIN)
def create_user():
    form = UserForm()
    if not form.validate():
        return jsonify({"errors": form.errors}), 400

    username = form.username.data.strip()
    if db.session.query(Profile.id).filter(Profile.username == username).first():
        return jsonify({"errors": {"username": ["Nama pengguna sudah digunakan."]}}), 400

    p = create_profile(username, form.name.data.strip(), form.role.data, form.password.data)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"errors": {"username": ["Nama pengguna sudah digunakan."]}}), 400

    user = profile_to_user(p)
    session = get_session(current_user)
    session.store.dispatch(a.AddUser(user))
    session.announce(session.toasts.user_added, user.name)
    current_app.logger.info("User created: %s (%s)", p.username, p.role)
    return jsonify({"ok": True, "item": user.to_dict()}), 201


@bp.put("/<int:user_id>")
@role_required(Role.ADMIN)
def update_user(user_id: int):
    p = db.session.get(Profile, user_id)
    if not p:
        return jsonify({"error": "User not found"}), 404

    form = UserUpdateForm()
    if not form.validate():
        return jsonify({"errors": form.errors}), 400

    update_profile(
        p,
        name=(form.name.data or "").strip() or None,
        role=form.role.data or None,
        password=form.password.data or None,
    )
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Updating user %s failed", user_id)
        return jsonify({"error": "Gagal memperbarui pengguna", "details": str(e)}), 500

    user = profile_to_user(p)
    get_session(current_user).store.dispatch(a.UpdateUser(user))
    return jsonify({"ok": True, "item": user.to_dict()})


@bp.delete("/<int:user_id>")
@role_required(Role.ADMIN)
def delete_user(user_id: int):
    if user_id == current_user.id:
        return jsonify({"error": "Tidak dapat menghapus akun sendiri"}), 400
    p = db.session.get(Profile, user_id)
    if not p:
        return jsonify({"error": "User not found"}), 404

    db.session.delete(p)
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Deleting user %s failed", user_id)
        return jsonify({"error": "Gagal menghapus pengguna", "details": str(e)}), 500

    get_session(current_user).store.dispatch(a.DeleteUser(str(user_id)))
    return jsonify({"ok": True})
