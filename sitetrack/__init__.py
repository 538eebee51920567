"""
SiteTrack — construction site project management API.
Flask Application Factory.

Usage:
    from sitetrack import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
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
from sqlalchemy.exc import SQLAlchemyError

from sitetrack.config import config
from sitetrack.integrations.drive_gateway import init_drive_gateway
from sitetrack.middleware.jwt_auth import init_jwt_middleware
from sitetrack.middleware.logging_config import configure_logging
from sitetrack.middleware.rate_limiter import init_rate_limits
from sitetrack.middleware.security_headers import init_security_headers
from sitetrack.middleware.timing import init_request_timing
from sitetrack.models import db
from sitetrack.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)


# ── SQLite FK enforcement (global engine event) ─────────────────────────
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
    default_limits=[],                     # credential routes only
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

    Raises:
        RuntimeError: production settings or Drive credentials are missing.
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

    # ── External storage (fails fast without credentials) ───────────────
    init_drive_gateway(app)

    # ── Middleware ───────────────────────────────────────────────────────
    init_security_headers(app)
    init_request_timing(app)
    init_jwt_middleware(app)
    register_error_handlers(app)

    # ── Import all models so Alembic can detect them ─────────────────────
    from sitetrack.models import auth as _auth_models          # noqa: F401
    from sitetrack.models import library as _library_models    # noqa: F401
    from sitetrack.models import records as _records_models    # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    if config_name != "testing":
        if config_name == "development":
            os.makedirs(os.path.join(os.path.dirname(app.root_path), "instance"), exist_ok=True)
        with app.app_context():
            try:
                db.create_all()
            except SQLAlchemyError as e:
                app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from sitetrack.blueprints.auth_bp import auth_bp
    from sitetrack.blueprints.comments_bp import comments_bp
    from sitetrack.blueprints.files_bp import files_bp
    from sitetrack.blueprints.health_bp import health_bp
    from sitetrack.blueprints.payments_bp import payments_bp
    from sitetrack.blueprints.progress_bp import progress_bp
    from sitetrack.blueprints.users_bp import users_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(progress_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(comments_bp)
    app.register_blueprint(files_bp)
    app.register_blueprint(health_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("create-admin")
    @click.option("--username", required=True)
    @click.option("--email", required=True)
    @click.option("--password", required=True, prompt=True, hide_input=True)
    def create_admin_cmd(username, email, password):
        """Create the first administrator account (bcrypt-hashed credential)."""
        from sitetrack.core.exceptions import ConflictError, ValidationError
        from sitetrack.models.auth import ROLE_ADMIN
        from sitetrack.services import user_service

        if user_service.admin_exists():
            raise click.ClickException("An admin account already exists")
        try:
            user = user_service.create_user(username, email, password, ROLE_ADMIN, hashed=True)
        except (ConflictError, ValidationError) as exc:
            raise click.ClickException(str(exc)) from exc
        click.echo(f"Admin created: {user.username} ({user.email})")

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
