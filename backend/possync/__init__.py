# backend/possync/__init__.py
from __future__ import annotations

import logging
from typing import Optional

from flask import Flask, request

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: Optional[dict] = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # No-op when the host process already configured logging
    logging.basicConfig(
        level=logging.DEBUG if app.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Fail at startup, not mid-cycle, if the dependency table is inconsistent
    from .services.entity_registry import validate_ordering
    validate_ordering()

    # Register blueprints
    from .routes.system import system_bp
    from .routes.sync import sync_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(sync_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = {
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        }
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
