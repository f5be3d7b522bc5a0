# sitrack/lookup/api.py
from flask import jsonify, request, current_app

from . import bp
from sitrack.reports.service import all_reports
from sitrack.tracking.public import find_report, tracking_result
from sitrack.utils.tz import now_local


@bp.get("")
def track():
    """GET /api/tracking?q=<nomor surat | perihal | id>"""
    query = (request.args.get("q") or "").strip()
    if not query:
        return jsonify({"error": "Mohon masukkan nomor surat"}), 400

    report = find_report(all_reports(), query)
    if report is None:
        current_app.logger.info("Tracking lookup without match: %r", query)
        return jsonify({"error": "Surat tidak ditemukan", "details": query}), 404
    return jsonify({"ok": True, "item": tracking_result(report, now_local().date())})
