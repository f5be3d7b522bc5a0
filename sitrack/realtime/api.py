# sitrack/realtime/api.py
import json
from datetime import datetime, timezone

from flask import Response, current_app, jsonify, request, stream_with_context
from flask_login import login_required

from . import bp


def _hub():
    return current_app.extensions["realtime_hub"]


@bp.get("/stream")
@login_required
def stream():
    """
    SSE: one ``event: <table>`` frame per committed row change.
    Optional ``?tables=reports,task_assignments`` narrows the feed.
    """
    hub = _hub()
    tables = [t for t in (request.args.get("tables") or "").split(",") if t.strip()]
    unknown = [t for t in tables if t not in hub.tables]
    if unknown:
        return jsonify({"error": "Unknown table", "details": ", ".join(unknown)}), 400

    sid = hub.subscribe(tables or None)
    keepalive = float(current_app.config.get("REALTIME_KEEPALIVE_SECONDS", 15.0))

    def gen():
        try:
            yield f"event: hello\ndata: {json.dumps({'time': datetime.now(timezone.utc).isoformat()})}\n\n"
            while True:
                evt = hub.poll(sid, timeout=keepalive)
                if evt is None:
                    yield ": keep-alive\n\n"
                    continue
                yield f"event: {evt.get('table', 'evt')}\n"
                yield f"data: {json.dumps(evt, ensure_ascii=False)}\n\n"
        finally:
            hub.unsubscribe(sid)

    headers = {
        "Cache-Control": "no-cache",
        "Content-Type": "text/event-stream; charset=utf-8",
        "X-Accel-Buffering": "no",  # nginx: disable buffering
    }
    return Response(stream_with_context(gen()), headers=headers)


@bp.get("/status")
@login_required
def status():
    hub = _hub()
    return jsonify({
        "ok": True,
        "running": hub.running,
        "tables": list(hub.tables),
        "channels": [ch.name for ch in hub.channels],
    })
