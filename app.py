"""Flask application factory for the complaint intake portal."""
import os
from typing import Optional

import click
from flask import Flask, jsonify, request
from sqlalchemy import create_engine, text
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import OperationalError
from dotenv import load_dotenv
from utils.errors import LifecycleError
from utils.logger import init_logging
from utils.security import apply_security_headers
from extensions import db, migrate, login_manager


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(LifecycleError)
    def lifecycle_error(error: LifecycleError):
        return jsonify(error.to_payload()), error.status_code

    @app.errorhandler(403)
    def forbidden(error):
        app.logger.warning("403 Forbidden", extra={"path": request.path, "method": request.method})
        return jsonify({"success": False, "message": "Forbidden"}), 403

    @app.errorhandler(404)
    def not_found_error(error):
        app.logger.warning("404 Not Found", extra={"path": request.path, "method": request.method})
        return jsonify({"success": False, "message": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({"success": False, "message": "Method not allowed"}), 405

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.exception("500 Internal Server Error")
        return jsonify({"success": False, "message": "Server error"}), 500


def ensure_database_exists(database_uri: str) -> None:
    """Create the target database if it does not exist (PostgreSQL + SQLite support)."""
    url = make_url(database_uri)

    if url.drivername.startswith("sqlite"):
        # For SQLite just make sure the parent directory exists.
        if url.database and url.database != ":memory:":
            os.makedirs(os.path.dirname(url.database) or ".", exist_ok=True)
        return

    if url.drivername.startswith("postgres"):
        db_name = url.database
        admin_url = url.set(database=os.getenv("POSTGRES_DB_ADMIN", "postgres"))
        engine = create_engine(admin_url, isolation_level="AUTOCOMMIT")
        try:
            with engine.connect() as conn:
                exists = conn.execute(
                    text("SELECT 1 FROM pg_database WHERE datname = :name"), {"name": db_name}
                ).scalar()
                if not exists:
                    conn.execute(text(f'CREATE DATABASE "{db_name}"'))
        except OperationalError:
            # If we cannot connect/create, let the normal app startup fail loudly later.
            pass
        finally:
            engine.dispose()


def register_cli(app: Flask) -> None:
    from utils.retention_sweeper import run_retention_sweep
    from utils.tokens import ACTOR_ROLES, create_access_token

    @app.cli.command("purge-withdrawn")
    def purge_withdrawn():
        """Run one retention sweep (also usable from an external cron)."""
        run_retention_sweep(app)

    @app.cli.command("issue-token")
    @click.option("--role", type=click.Choice(ACTOR_ROLES), required=True)
    @click.option("--id", "actor_id", type=int, required=True)
    def issue_token(role, actor_id):
        """Mint a bearer token for a user or organization."""
        click.echo(create_access_token(role, actor_id))


def create_app(config_name: Optional[str] = None) -> Flask:
    """Application factory with environment-aware configuration."""
    load_dotenv()

    app = Flask(__name__, instance_relative_config=True)

    # Resolve configuration
    from config import DevelopmentConfig, ProductionConfig, TestingConfig

    config_key = (config_name or os.getenv("FLASK_CONFIG") or os.getenv("FLASK_ENV") or "production").lower()
    config_map = {
        "development": DevelopmentConfig,
        "dev": DevelopmentConfig,
        "production": ProductionConfig,
        "prod": ProductionConfig,
        "testing": TestingConfig,
        "test": TestingConfig,
    }
    config_class = config_map.get(config_key, ProductionConfig)
    app.config.from_object(config_class())

    ensure_database_exists(app.config["SQLALCHEMY_DATABASE_URI"])

    # Optional instance-specific overrides
    if not app.config.get("TESTING"):
        app.config.from_pyfile("config.py", silent=True)
        os.makedirs(app.instance_path, exist_ok=True)

    # Initialize logging early
    logger = init_logging(app)
    app.logger = logger

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    @login_manager.request_loader
    def load_actor_from_request(req):
        from utils.identity import load_actor_from_bearer  # Local import to avoid circular dependency

        return load_actor_from_bearer(req.headers.get("Authorization"))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"success": False, "message": "Unauthorized"}), 401

    # Blueprints
    from routes import main_bp, complaints_bp, notifications_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(complaints_bp)
    app.register_blueprint(notifications_bp)

    register_error_handlers(app)
    register_cli(app)

    @app.after_request
    def _after_request(response):
        return apply_security_headers(response, force_https=app.config.get("PREFERRED_URL_SCHEME") == "https")

    # Ensure tables exist so first run creates the database structure automatically.
    with app.app_context():
        db.create_all()

    from utils.notifications import DatabaseNotificationEmitter
    from utils.retention_sweeper import RetentionSweeper

    app.extensions.setdefault("notification_emitter", DatabaseNotificationEmitter())
    # Started by the serving process only (see wsgi.py), never by CLI runs.
    app.extensions["retention_sweeper"] = RetentionSweeper.from_config(app)

    return app
