# treino/__init__.py
import atexit
import logging

import click
from flask import Flask, jsonify
from flask_cors import CORS
from flask_sqlalchemy import SQLAlchemy
from flask_jwt_extended import JWTManager

from config import Config
from .errors import ConfigurationError

db = SQLAlchemy()
jwt = JWTManager()


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    if not app.testing:
        logging.basicConfig(
            level=app.config.get("LOG_LEVEL", "INFO"),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    # Init extensions
    db.init_app(app)
    jwt.init_app(app)

    # CORS: the SPA calls /api/*
    CORS(app, resources={r"/api/*": {"origins": "*"}})

    # -----------------------------
    # JWT error handlers
    # -----------------------------
    @jwt.unauthorized_loader
    def unauthorized_callback(reason):
        return (
            jsonify(
                {
                    "error": "Missing or invalid auth token",
                    "details": reason,
                }
            ),
            401,
        )

    @jwt.invalid_token_loader
    def invalid_token_callback(reason):
        return (
            jsonify(
                {
                    "error": "Invalid auth token",
                    "details": reason,
                }
            ),
            401,
        )

    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        return jsonify({"error": "Token has expired"}), 401

    @app.errorhandler(ConfigurationError)
    def configuration_error(e):
        app.logger.error(f"[config] {e}")
        return (
            jsonify(
                {
                    "error": "Server configuration incomplete",
                    "details": str(e),
                }
            ),
            500,
        )

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed"}), 405

    # -----------------------------
    # IMPORT BLUEPRINTS (all routes)
    # -----------------------------
    from .routes.auth_routes import auth_bp
    from .routes.profile_routes import profile_bp
    from .routes.workout_routes import workouts_bp
    from .routes.measurement_routes import measurements_bp
    from .routes.goal_routes import goals_bp
    from .routes.assessment_routes import assessments_bp
    from .routes.suggestion_routes import suggestions_bp
    from .routes.billing_routes import billing_bp
    from .routes.affiliate_routes import affiliate_bp
    from .routes.feedback_routes import feedback_bp
    from .routes.admin_routes import admin_bp
    from .routes.timer_routes import timers_bp

    # -----------------------------
    # REGISTER BLUEPRINTS
    # -----------------------------
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(profile_bp, url_prefix="/api/profile")
    app.register_blueprint(workouts_bp, url_prefix="/api/workouts")
    app.register_blueprint(measurements_bp, url_prefix="/api/measurements")
    app.register_blueprint(goals_bp, url_prefix="/api/goals")
    app.register_blueprint(assessments_bp, url_prefix="/api/assessments")
    app.register_blueprint(suggestions_bp, url_prefix="/api/suggestions")
    app.register_blueprint(billing_bp, url_prefix="/api/billing")
    app.register_blueprint(affiliate_bp, url_prefix="/api/affiliate")
    app.register_blueprint(feedback_bp, url_prefix="/api/feedback")
    app.register_blueprint(admin_bp, url_prefix="/api/admin")
    app.register_blueprint(timers_bp, url_prefix="/api/timers")

    @app.route("/api/health")
    def health():
        return {"status": "ok"}

    # -----------------------------
    # Workout timers (in-process, per user)
    # -----------------------------
    from .services.timers import TimerRegistry

    registry = TimerRegistry()
    app.extensions["timer_registry"] = registry
    if app.config.get("TIMER_TICKER_ENABLED"):
        registry.start_ticker()
        atexit.register(registry.stop_ticker)

    # -----------------------------
    # CLI
    # -----------------------------
    @app.cli.command("promote-admin")
    @click.argument("email")
    def promote_admin(email):
        """Give the user with EMAIL the admin plan."""
        from .models.user import User

        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            raise click.ClickException(f"user not found: {email}")
        user.plan_type = "admin"
        db.session.commit()
        click.echo(f"{user.email} is now an admin")

    # -----------------------------
    # DB init
    # -----------------------------
    with app.app_context():
        from . import models  # noqa: F401  (register tables)

        db.create_all()

    return app
