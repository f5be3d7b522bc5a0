# sitrack/__init__.py
import atexit
import os
from pathlib import Path

from apscheduler.schedulers.background import BackgroundScheduler
from flask import Flask, jsonify
from sqlalchemy import inspect

from .extensions import db, migrate, csrf, login_manager
from .realtime.broker import Hub, TRACKED_TABLES
from .realtime.triggers import install_triggers
from .tracking.persistence import LocalSlot, MemorySlot
from .tracking.session import DEFAULT_TABLES


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _ensure_all_tables(app):
    """Dev-only SQLite safety net: make sure base tables exist once."""
    uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if not uri.startswith("sqlite:"):
        return
    with app.app_context():
        from . import models  # noqa: F401
        insp = inspect(db.engine)
        if not set(insp.get_table_names()) >= set(TRACKED_TABLES):
            app.logger.info("Dev create_all (SQLite)")
            db.create_all()


def create_app(overrides=None):
    app = Flask(__name__)

    # ---------- Base Config ----------
    app.config["SECRET_KEY"] = os.getenv("SECRET_KEY", "dev-only")
    app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv("DATABASE_URL", "sqlite:///sitrack.db")
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config.setdefault("APP_TIMEZONE", os.getenv("APP_TIMEZONE", "Asia/Jakarta"))

    # Object storage (no token => mock attachment URLs)
    app.config.setdefault("BLOB_READ_WRITE_TOKEN", os.getenv("BLOB_READ_WRITE_TOKEN"))
    app.config.setdefault("BLOB_BASE_URL", os.getenv("BLOB_BASE_URL", "https://blob.vercel-storage.com"))
    app.config.setdefault("BLOB_TIMEOUT", float(os.getenv("BLOB_TIMEOUT", "30")))
    app.config.setdefault("UPLOAD_MAX_BYTES", int(os.getenv("UPLOAD_MAX_BYTES", str(10 * 1024 * 1024))))
    # above the upload limit so oversized files reach the handler's own 400
    app.config.setdefault("MAX_CONTENT_LENGTH", 32 * 1024 * 1024)

    # Realtime
    app.config.setdefault("REALTIME_ENABLED", _env_flag("REALTIME_ENABLED", True))
    tables = os.getenv("REALTIME_TABLES")
    app.config.setdefault(
        "REALTIME_TABLES",
        tuple(t.strip() for t in tables.split(",") if t.strip()) if tables else DEFAULT_TABLES,
    )
    app.config.setdefault("REALTIME_SETUP_DELAY", float(os.getenv("REALTIME_SETUP_DELAY", "1")))
    app.config.setdefault("REALTIME_KEEPALIVE_SECONDS", 15.0)
    app.config.setdefault("SCHEDULER_ENABLED", True)

    # Local state slot
    Path(app.instance_path).mkdir(parents=True, exist_ok=True)
    app.config.setdefault(
        "LOCAL_STATE_PATH",
        os.getenv("LOCAL_STATE_PATH") or os.path.join(app.instance_path, "local_state.json"),
    )

    if overrides:
        app.config.update(overrides)

    # ---------- Extensions ----------
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    login_manager.init_app(app)

    state_path = app.config.get("LOCAL_STATE_PATH")
    app.extensions["local_slot"] = LocalSlot(state_path) if state_path else MemorySlot()

    hub = Hub(TRACKED_TABLES)
    if app.config["REALTIME_ENABLED"]:
        hub.start()
    app.extensions["realtime_hub"] = hub
    install_triggers()

    if app.config["SCHEDULER_ENABLED"]:
        sched = BackgroundScheduler(daemon=True, timezone="UTC")
        sched.start()
        app.extensions["scheduler"] = sched
        app.logger.info("Background scheduler started")

    # ---------- Login loader ----------
    from .models import Profile  # after db.init_app

    @login_manager.user_loader
    def load_user(user_id: str):
        try:
            return db.session.get(Profile, int(user_id))
        except (TypeError, ValueError):
            return None

    @login_manager.unauthorized_handler
    def _unauthorized():
        return jsonify({"error": "login_required"}), 401

    # ---------- Blueprints ----------
    from .auth import bp as auth_bp
    from .users import bp as users_bp
    from .reports import bp as reports_bp
    from .lookup import bp as lookup_bp
    from .realtime import bp as realtime_bp

    # Import the modules FIRST so all @bp.* decorators execute before registration.
    import sitrack.reports.routes as _reports_routes  # noqa: F401
    import sitrack.uploader.api as _uploader_api  # noqa: F401
    from .uploader import bp as uploader_bp

    for bp in (auth_bp, users_bp, reports_bp, lookup_bp, realtime_bp, uploader_bp):
        csrf.exempt(bp)
        app.register_blueprint(bp)

    # ---------- CLI ----------
    from .cli import seed
    app.cli.add_command(seed)

    # ---------- Root ----------
    @app.get("/")
    def _root():
        return jsonify({"ok": True, "app": "sitrack"})

    _ensure_all_tables(app)

    # ---------- Teardown ----------
    from .sessions import shutdown
    atexit.register(shutdown, app)
    return app
