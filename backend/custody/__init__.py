# backend/custody/__init__.py
import logging

from flask import Flask

from .config import Config
from .extensions import db, migrate



def create_app(config_object=None, *, clock=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or Config)

    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if isinstance(level, int):
        app.logger.setLevel(level)
        logging.getLogger("custody").setLevel(level)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Service graph is built once and shared by every request
    from .container import init_services
    init_services(app, clock=clock)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.assignments import assignments_bp
    from .routes.transactions import transactions_bp
    from .routes.status_history import status_history_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(assignments_bp)
    app.register_blueprint(transactions_bp)
    app.register_blueprint(status_history_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
