"""
Flask application factory.

Creates and configures the Flask app, registers all blueprints.
"""
from flask import Flask, current_app


def get_services():
    """The Services bundle attached to the running app."""
    return current_app.extensions['leadsync']


def create_app(services=None, redis_client=None):
    """
    Create and configure the Flask application.

    Tests pass a pre-built Services bundle (and a fake Redis) so nothing
    reaches the network or the configured database.
    """
    from leadsync.logging_config import configure_logging
    from leadsync.config import BREAKER_FAILURE_THRESHOLD, BREAKER_RESET_TIMEOUT

    app = Flask(__name__)

    configure_logging(app)

    # Initialize circuit breakers for the LightFusion API and storage
    if redis_client is None:
        from leadsync.extensions import redis_client
    from leadsync.services.circuit_breaker import init_breakers
    breakers = init_breakers(
        redis_client,
        failure_threshold=BREAKER_FAILURE_THRESHOLD,
        reset_timeout=BREAKER_RESET_TIMEOUT,
    )

    if services is None:
        from leadsync.extensions import build_services
        services = build_services(breakers=breakers)
    app.extensions['leadsync'] = services

    # Register blueprints
    from leadsync.routes.health import bp as health_bp
    from leadsync.routes.leads import bp as leads_bp
    from leadsync.routes.projects import bp as projects_bp
    from leadsync.routes.errors import bp as errors_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(leads_bp)
    app.register_blueprint(projects_bp)
    app.register_blueprint(errors_bp)

    # Import models so Base.metadata knows about them (required for SQLAlchemy).
    # Schema is managed by Alembic
    import importlib
    importlib.import_module('leadsync.models.lead')

    return app
