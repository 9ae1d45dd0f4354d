"""
PoolOps: Pool Maintenance Operations
Flask Application Factory.

Usage:
    from poolops import create_app
    app = create_app()          # uses APP_ENV or defaults to "development"
    app = create_app("testing") # explicit config
"""

import logging
import os

import click
from flask import Flask
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from poolops.config import config
from poolops.middleware.logging_config import configure_logging
from poolops.middleware.rate_limiter import init_rate_limits
from poolops.middleware.timing import init_request_timing
from poolops.models import db
from poolops.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit; applied per blueprint
    storage_uri=os.getenv("REDIS_URL") or "memory://",
)


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
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    app.config.setdefault("MAX_CONTENT_LENGTH", 2 * 1024 * 1024)  # 2 MB

    # ── Models (register tables on the metadata) ─────────────────────────
    from poolops.models import audit as _audit_models              # noqa: F401
    from poolops.models import company as _company_models          # noqa: F401
    from poolops.models import maintenance as _maintenance_models  # noqa: F401
    from poolops.models import notification as _notification_models  # noqa: F401
    from poolops.models import parameter as _parameter_models      # noqa: F401

    # ── Auto-create tables for SQLite dev databases ──────────────────────
    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite") and not app.testing:
        os.makedirs(app.instance_path, exist_ok=True)
        with app.app_context():
            db.create_all()
            app.logger.info("db.create_all() completed successfully")

    # ── Blueprints ───────────────────────────────────────────────────────
    from poolops.blueprints.maintenance_bp import maintenance_bp
    from poolops.blueprints.notification_bp import notification_bp
    from poolops.blueprints.parameter_bp import parameter_bp
    from poolops.blueprints.schedule_bp import schedule_bp

    app.register_blueprint(maintenance_bp)
    app.register_blueprint(parameter_bp)
    app.register_blueprint(notification_bp)
    app.register_blueprint(schedule_bp)

    # ── Health check ─────────────────────────────────────────────────────
    @app.route("/api/v1/health")
    def health():
        return {"status": "ok", "app": "PoolOps"}

    # ── Error handlers ───────────────────────────────────────────────────
    register_error_handlers(app)

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("reset-company")
    @click.argument("company_id", type=int)
    def reset_company_cmd(company_id):
        """Open the next maintenance cycle for every client of a company."""
        from poolops.services.reset_service import reset_company
        result = reset_company(company_id, actor="cli")
        logger.info("Reset company %s: %s (%s created)", company_id, result.status, result.created)

    return app
