# backend/app/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate



def create_app(overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Mail transport is resolved once per app, never lazily per call
    from .services.notification_service import build_notifier
    app.extensions["notifier"] = build_notifier(app.config)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.shops import shops_bp
    from .routes.inventory import inventory_bp
    from .routes.customers import customers_bp
    from .routes.suppliers import suppliers_bp
    from .routes.staff import staff_bp
    from .routes.billing import billing_bp
    from .routes.purchase_orders import purchase_orders_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(shops_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(suppliers_bp)
    app.register_blueprint(staff_bp)
    app.register_blueprint(billing_bp)
    app.register_blueprint(purchase_orders_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin and origin in app.config["CORS_ORIGINS"]:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
