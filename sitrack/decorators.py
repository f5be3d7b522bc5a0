# sitrack/decorators.py
from functools import wraps

from flask import jsonify
from flask_login import current_user

from .tracking.types import Role


def _role_of(user) -> Role:
    role_enum = getattr(user, "role_enum", None)
    return role_enum if isinstance(role_enum, Role) else Role.parse(getattr(user, "role", None))


def role_required(*roles):
    """
    Require a logged-in profile holding one of ``roles``.
    Admin passes every check. Always answers JSON (401/403), never redirects.
    """
    allowed = {Role.parse(r) if not isinstance(r, Role) else r for r in roles}

    def decorator(view_func):
        @wraps(view_func)
        def wrapper(*args, **kwargs):
            if not getattr(current_user, "is_authenticated", False):
                return jsonify({"error": "login_required"}), 401
            role = _role_of(current_user)
            if role is not Role.ADMIN and allowed and role not in allowed:
                return jsonify({"error": "forbidden", "detail": f"Role {role.value} not allowed"}), 403
            return view_func(*args, **kwargs)

        return wrapper

    return decorator
