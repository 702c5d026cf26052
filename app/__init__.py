"""
Accessibility Audit Platform
Flask Application Factory.

Usage:
    from app import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask
from flask_cors import CORS
from flask_migrate import Migrate

from app.config import config
from app.models import db
from app.middleware.logging_config import configure_logging
from app.middleware.timing import init_request_timing
from app.middleware.jwt_auth import init_jwt_middleware
from app.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

migrate = Migrate()


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    # Instantiated so ProductionConfig can refuse to start without its env vars
    app.config.from_object(config[config_name]())
    os.makedirs(app.instance_path, exist_ok=True)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── JWT auth middleware (sets g.jwt_user_id / g.jwt_role) ────────────
    init_jwt_middleware(app)

    # ── Request guards (input length + Content-Type) ─────────────────────
    @app.before_request
    def _guard_request():
        from flask import request as _req, abort
        max_len = app.config.get("MAX_CONTENT_LENGTH")
        if max_len and _req.content_length and _req.content_length > max_len:
            abort(413, description="Request body too large")
        if _req.method in ("POST", "PUT", "PATCH", "DELETE") and _req.path.startswith("/api/"):
            ct = _req.content_type or ""
            if _req.data and "json" not in ct:
                abort(415, description="Content-Type must be application/json")

    # ── Import all models so Alembic can detect them ─────────────────────
    from app.models import user as _user_models             # noqa: F401
    from app.models import project as _project_models       # noqa: F401
    from app.models import scenario as _scenario_models     # noqa: F401
    from app.models import testing as _testing_models       # noqa: F401
    from app.models import collaboration as _collab_models  # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    with app.app_context():
        db.create_all()
        app.logger.info("db.create_all() completed successfully")

    # ── Blueprints ───────────────────────────────────────────────────────
    from app.blueprints.project_bp import project_bp
    from app.blueprints.admin_bp import admin_bp
    from app.blueprints.scenario_bp import scenario_bp
    from app.blueprints.tester_bp import tester_bp
    from app.blueprints.reporting_bp import reporting_bp

    app.register_blueprint(project_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(scenario_bp)
    app.register_blueprint(tester_bp)
    app.register_blueprint(reporting_bp)

    register_error_handlers(app)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("reconcile-orphans")
    @click.option("--purge", is_flag=True, help="Delete the orphans instead of listing them.")
    def reconcile_orphans_cmd(purge):
        """List (or delete) test cases whose scenario is missing."""
        from app.services.testing_service import find_orphaned_test_cases, purge_orphaned_test_cases
        if purge:
            count = purge_orphaned_test_cases()
            db.session.commit()
            click.echo(f"Purged {count} orphaned test cases.")
            return
        orphans = find_orphaned_test_cases()
        for tc in orphans:
            click.echo(f"test case {tc.id} (project {tc.project_id}, scenario {tc.scenario_id}): {tc.title}")
        click.echo(f"{len(orphans)} orphaned test cases.")

    # ── Health check ─────────────────────────────────────────────────────
    @app.route("/api/v1/health")
    def health():
        return {"status": "ok", "app": "Accessibility Audit Platform"}

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        from flask import request
        return {"error": "Not found", "code": "ERR_NOT_FOUND", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(413)
    def too_large(e):
        return {"error": "Request body too large"}, 413

    @app.errorhandler(415)
    def unsupported_media(e):
        return {"error": "Content-Type must be application/json"}, 415

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error", "code": "ERR_INTERNAL"}, 500

    return app
