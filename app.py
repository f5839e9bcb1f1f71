"""Flask application factory for the municipal solid waste management portal."""
import os
from typing import Optional

import click
from flask import Flask, g, jsonify, request
from dotenv import load_dotenv
from sqlalchemy.engine.url import make_url

from core.access import ANONYMOUS_ENTRY_POINT
from core.identity import Identity
from utils.logger import init_logging
from utils.security import apply_security_headers, bearer_token
from extensions import db, migrate, login_manager


def _json_error(message: str, status_code: int, **extra):
    response = jsonify({"message": message, **extra})
    response.status_code = status_code
    return response


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(400)
    def bad_request(error):
        app.logger.info("400 Bad Request", extra={"path": request.path, "method": request.method})
        return _json_error("The request could not be understood.", 400)

    @app.errorhandler(401)
    def unauthorized(error):
        return _json_error("Authentication required.", 401, redirect=ANONYMOUS_ENTRY_POINT)

    @app.errorhandler(403)
    def forbidden(error):
        app.logger.warning("403 Forbidden", extra={"path": request.path, "method": request.method})
        return _json_error("You do not have access to this resource.", 403, redirect=ANONYMOUS_ENTRY_POINT)

    @app.errorhandler(404)
    def not_found_error(error):
        app.logger.warning("404 Not Found", extra={"path": request.path, "method": request.method})
        return _json_error("Not found.", 404)

    @app.errorhandler(405)
    def method_not_allowed(error):
        return _json_error("Method not allowed.", 405)

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.exception("500 Internal Server Error")
        db.session.rollback()
        return _json_error("Something went wrong on our side. Please retry.", 500)


def ensure_database_exists(database_uri: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    url = make_url(database_uri)
    if url.drivername.startswith("sqlite") and url.database:
        os.makedirs(os.path.dirname(url.database) or ".", exist_ok=True)


def register_auth(app: Flask) -> None:
    """Resolve ``Authorization: Bearer`` tokens into the request identity."""
    from models import AccessToken  # Local import to avoid circular dependency

    @app.before_request
    def _resolve_bearer() -> None:
        g.identity = None
        g.access_token = None
        raw = bearer_token(request)
        if not raw:
            return
        token = AccessToken.resolve(raw)
        if token is None or not token.is_usable or not token.user.is_active:
            return
        g.access_token = token
        g.identity = Identity(
            role=token.user.role_enum,
            subject_id=token.user.subject_id,
            credential_token=raw,
        )

    @login_manager.request_loader
    def load_user_from_request(req):
        token = g.get("access_token")
        return token.user if token is not None else None

    @login_manager.unauthorized_handler
    def unauthorized():
        return _json_error("Authentication required.", 401, redirect=ANONYMOUS_ENTRY_POINT)


def create_app(config_name: Optional[str] = None) -> Flask:
    """Application factory with environment-aware configuration."""
    load_dotenv()

    app = Flask(__name__, instance_relative_config=True)

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

    logger = init_logging(app)
    app.logger = logger

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    login_manager.session_protection = None
    register_auth(app)

    from routes import main_bp, auth_bp, records_bp
    from routes.auth import ensure_default_staff

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(records_bp)

    @app.cli.command("create-defaults")
    def create_defaults_command():
        """Create the default supervisor and admin accounts."""
        created = ensure_default_staff(app)
        click.echo(f"Created: {', '.join(created) or 'none'}")

    @app.cli.command("report-vehicle")
    @click.argument("name")
    @click.argument("latitude", type=float)
    @click.argument("longitude", type=float)
    @click.option("--status", default="active")
    def report_vehicle(name, latitude, longitude, status):
        """Record a collection vehicle position (feed this from the GPS relay)."""
        from models import VehicleLocation

        db.session.add(VehicleLocation(name=name, latitude=latitude, longitude=longitude, status=status))
        db.session.commit()
        click.echo(f"Recorded {name} at {latitude}, {longitude}")

    register_error_handlers(app)

    @app.after_request
    def _after_request(response):
        return apply_security_headers(response, force_https=app.config.get("PREFERRED_URL_SCHEME") == "https")

    # Ensure tables exist so first run creates the database structure automatically.
    with app.app_context():
        db.create_all()
        if app.config.get("ALLOW_DEFAULT_USERS"):
            ensure_default_staff(app)

    return app


if __name__ == "__main__":
    port = int(os.getenv("PORT", 5000))
    create_app().run(host="0.0.0.0", port=port, use_reloader=False)
