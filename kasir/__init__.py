"""Flask application factory."""
from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException
from kasir.database import init_db
import os


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Initialize Sentry for error tracking in production
    if os.getenv('SENTRY_DSN') and (app.config.get('ENV') == 'production' or os.getenv('FLASK_ENV') == 'production'):
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=os.getenv('SENTRY_DSN'),
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,  # 10% of transactions for performance monitoring
            environment=os.getenv('FLASK_ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Production: Enable ProxyFix for HTTPS behind Nginx reverse proxy
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    # Initialize database
    init_db(app)

    # Redis cache (report rollups)
    from kasir.services.cache_service import init_cache
    cache = init_cache(app)

    # Ledger event bus: report invalidation + optional realtime push
    from kasir.services.events import LedgerEventBus, RedisEventPublisher, invalidate_reports_on, ALL_EVENTS
    bus = LedgerEventBus()
    app.extensions['ledger_events'] = bus
    invalidate_reports_on(bus, cache)
    if app.config.get('REALTIME_EVENTS_ENABLED'):
        bus.subscribe(ALL_EVENTS, RedisEventPublisher(cache))

    # Setup Prometheus metrics instrumentation
    from kasir.blueprints.metrics import setup_metrics_instrumentation, ledger_conflicts_total
    setup_metrics_instrumentation(app)

    # Tenant context from the upstream auth layer
    from kasir.middleware import load_tenant

    @app.before_request
    def before_request_handler():
        load_tenant()

    # Error Handlers
    from kasir.exceptions import LedgerError, ConflictError

    @app.errorhandler(LedgerError)
    def handle_ledger_error(error):
        """Handle typed ledger exceptions."""
        if isinstance(error, ConflictError):
            ledger_conflicts_total.inc()
        if error.status_code >= 500:
            app.logger.error(f"LedgerError [{error.status_code}]: {error.message}")
        else:
            app.logger.info(f"LedgerError [{error.status_code}] {request.method} {request.path}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({
            'status': 'error',
            'code': error.name.lower().replace(' ', '_'),
            'message': error.description
        }), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.exception(f"Unhandled Exception: {error}")
        return jsonify({'status': 'error', 'code': 'internal_error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from kasir.blueprints.main import main_bp
    from kasir.blueprints.metrics import metrics_bp
    from kasir.blueprints.profile import profile_bp
    from kasir.blueprints.catalog import catalog_bp
    from kasir.blueprints.sales import sales_bp
    from kasir.blueprints.reports import reports_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(metrics_bp)
    app.register_blueprint(profile_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(reports_bp)

    # Register CLI commands
    from kasir.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
