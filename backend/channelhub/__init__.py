# backend/channelhub/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate, CHANNEL_REGISTRY_KEY


def create_app(config_overrides: dict | None = None, channel_transport=None) -> Flask:
    """
    Application factory.

    config_overrides are applied before extensions initialize, so tests can
    point SQLALCHEMY_DATABASE_URI at an in-memory database. channel_transport
    is passed to every channel adapter's httpx client (tests use
    httpx.MockTransport).
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Adapters are registered once here and read-only afterwards
    from .channels.registry import build_default_registry
    app.extensions[CHANNEL_REGISTRY_KEY] = build_default_registry(app.config, transport=channel_transport)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.products import products_bp
    from .routes.inventory import inventory_bp
    from .routes.orders import orders_bp
    from .routes.channels import channels_bp
    from .routes.sync import sync_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(channels_bp)
    app.register_blueprint(sync_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = app.config.get("CORS_ALLOWED_ORIGINS") or set()
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
