from flask import Blueprint

from sitrack.errors import register_json_errors

bp = Blueprint("users", __name__, url_prefix="/api/users")
register_json_errors(bp, "Users")

from . import routes  # noqa: E402,F401
