# sitrack/reports/__init__.py
from flask import Blueprint

from sitrack.errors import register_json_errors

bp = Blueprint("reports", __name__, url_prefix="/api")
register_json_errors(bp, "Reports")

# Do NOT import .routes here: sitrack.sessions imports .service, and routes import sitrack.sessions.
# The app factory imports sitrack.reports.routes before registering bp.
