# backend/mams/__init__.py
from flask import Flask, jsonify

from .config import Config
from .extensions import db, migrate


def _apply_sqlite_timeout(app: Flask) -> None:
    if not str(app.config.get("SQLALCHEMY_DATABASE_URI", "")).startswith("sqlite"):
        return
    options = dict(app.config.get("SQLALCHEMY_ENGINE_OPTIONS") or {})
    connect_args = dict(options.get("connect_args") or {})
    connect_args.setdefault("timeout", app.config["SQLITE_BUSY_TIMEOUT_SECONDS"])
    options["connect_args"] = connect_args
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = options


def create_app(config_overrides=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    # Overrides must land before db.init_app reads the database URL
    if config_overrides:
        app.config.update(config_overrides)
    _apply_sqlite_timeout(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .services.audit_service import AuditSink
    AuditSink(app)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.masters import bases_bp, equipment_bp
    from .routes.purchases import purchases_bp
    from .routes.transfers import transfers_bp
    from .routes.assignments import assignments_bp
    from .routes.expenditures import expenditures_bp
    from .routes.dashboard import dashboard_bp
    from .routes.ledger import ledger_bp
    from .routes.audit import audit_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(bases_bp)
    app.register_blueprint(equipment_bp)
    app.register_blueprint(purchases_bp)
    app.register_blueprint(transfers_bp)
    app.register_blueprint(assignments_bp)
    app.register_blueprint(expenditures_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(ledger_bp)
    app.register_blueprint(audit_bp)

    @app.errorhandler(404)
    def not_found(_error):
        return jsonify({"error": {"code": "not_found", "message": "Resource not found"}}), 404

    @app.errorhandler(405)
    def method_not_allowed(_error):
        return jsonify({"error": {"code": "method_not_allowed", "message": "Method not allowed"}}), 405

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
