import logging

import click
from flask import Flask, current_app
from flasgger import Swagger
from flask_cors import CORS

from .config import get_config
from .errors import register_error_handlers
from models.db_storage import DBStorage
from services import build_services
from services.settings import AuthSettings

logger = logging.getLogger(__name__)

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0.0",
    "info": {
        "title": "ModernAPI",
        "version": "1.0.0",
        "description": "Authentication and user management: login, registration, "
                       "refresh-token rotation, logout and account lockout.",
    },
    "basePath": "/",  # blueprints are mounted under /api/v1
    "schemes": ["http"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Enter the token with the `Bearer ` prefix, e.g. \"Bearer abcde12345\"."
        }
    }
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            "rule_filter": lambda rule: True,   # include all endpoints
            "model_filter": lambda tag: True,   # include all models
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}


def create_app(config_name: str | None = None, storage: DBStorage | None = None, **services_kwargs) -> Flask:
    """
    Application factory: creates and configures the Flask app.

    The auth settings are validated here, so a bad JWT_SECRET stops the app
    from starting (ConfigurationError). Pass `storage` to reuse an existing
    DBStorage (tests); extra keyword arguments go to build_services().
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    app.config.from_object(get_config(config_name))

    settings = AuthSettings.from_mapping(app.config)

    if storage is None:
        storage = DBStorage(app.config["DATABASE_URL"])
        storage.reload()

    app.extensions["storage"] = storage
    app.extensions["services"] = build_services(storage, settings, **services_kwargs)

    # Cross-Origin Resource Sharing: enable for dev, configurable for prod
    CORS(app, resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}})

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    # Register global error handlers that return the uniform error envelope
    register_error_handlers(app)

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .users import bp as users_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix="/api/v1/auth")
    app.register_blueprint(users_bp, url_prefix="/api/v1")

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        storage.close()

    @app.cli.command("purge-expired-tokens")
    def purge_expired_tokens():
        """Delete refresh tokens whose expiry has passed."""
        removed = current_app.extensions["services"].auth.cleanup_expired_tokens()
        click.echo(f"Removed {removed} expired refresh tokens")

    @app.route("/")
    def root():
        return {
            "message": "Welcome to ModernAPI",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
        }, 200

    logger.debug("Application created with config %s", get_config(config_name).__name__)
    return app
