# sitrack/errors.py
from flask import jsonify, current_app
from werkzeug.exceptions import HTTPException


def register_json_errors(bp, label: str):
    """JSON error bodies for an API blueprint instead of HTML pages."""

    @bp.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        payload = {"error": e.name}
        if getattr(e, "description", None):
            payload["detail"] = e.description
        return jsonify(payload), e.code

    @bp.errorhandler(Exception)
    def _unexpected_error(e: Exception):
        current_app.logger.exception("Unexpected error in %s API", label)
        return jsonify({"error": "Internal Server Error"}), 500
