# backend/pdcms/__init__.py
from __future__ import annotations

import logging
from typing import Any, Mapping

from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: Mapping[str, Any] | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))
    logging.getLogger("pdcms").setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.pdcs import pdcs_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(pdcs_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
