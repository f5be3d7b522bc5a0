# sitrack/uploader/api.py
import time

from flask import request, jsonify, current_app

from . import bp
from .storage import BlobStorageError, blob_path, get_blob_storage, sniff_content_type
from sitrack.utils.tz import utc_now_iso

MAX_UPLOAD_BYTES = 10 * 1024 * 1024


def _millis() -> int:
    return int(time.time() * 1000)


@bp.post("")
def upload_file():
    """
    Multipart upload: ``file``, ``reportId``, ``uploadedBy``.
    Returns the file attachment record; the caller attaches it to a report.
    """
    f = request.files.get("file")
    if f is None or not f.filename:
        return jsonify({"error": "No file provided"}), 400

    report_id = (request.form.get("reportId") or "").strip()
    uploaded_by = (request.form.get("uploadedBy") or "").strip()
    if not report_id or not uploaded_by:
        return jsonify({"error": "Report ID and uploader information required"}), 400

    data = f.read()
    limit = int(current_app.config.get("UPLOAD_MAX_BYTES", MAX_UPLOAD_BYTES))
    if len(data) > limit:
        current_app.logger.info("Upload rejected, %s bytes > %s", len(data), limit)
        return jsonify({"error": "File size exceeds 10MB limit"}), 400

    storage = get_blob_storage()
    if storage is None:
        current_app.logger.warning("No blob token configured; returning mock attachment")
        return jsonify({
            "id": f"mock-{_millis()}",
            "fileName": f.filename,
            "fileUrl": f"https://example.com/mock-files/{f.filename}",
            "uploadedAt": utc_now_iso(),
            "uploadedBy": uploaded_by,
            "type": "original",
        })

    path = blob_path(report_id, f.filename)
    try:
        url = storage.put(path, data, sniff_content_type(data, f.mimetype))
    except BlobStorageError as e:
        current_app.logger.error("Blob upload failed (%s): %s", e.status_code, e.message)
        return jsonify({"error": "Blob upload failed", "details": e.message}), 500

    return jsonify({
        "id": f"blob-{_millis()}",
        "fileName": f.filename,
        "fileUrl": url,
        "uploadedAt": utc_now_iso(),
        "uploadedBy": uploaded_by,
        "type": "original",
    })
