# backend/pos_events/__init__.py
from flask import Flask

from .config import Config
from .extensions import db, migrate, dispatcher
from .services.promo_code_service import PromoCodeGenerator


def create_app() -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    app.logger.setLevel(app.config["LOG_LEVEL"])

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    dispatcher.init_app(app)
    app.extensions["promo_code_generator"] = PromoCodeGenerator()

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.promo_codes import promo_codes_bp
    from .routes.events import events_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(promo_codes_bp)
    app.register_blueprint(events_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
