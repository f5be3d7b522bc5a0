from flask import Blueprint

from sitrack.errors import register_json_errors

# Public, no login: letter senders look up their own letter here
bp = Blueprint("lookup", __name__, url_prefix="/api/tracking")
register_json_errors(bp, "Tracking")

from . import api  # noqa: E402,F401
