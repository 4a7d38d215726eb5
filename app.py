# app.py

from flask import Flask, g, request, jsonify
from config import get_config, ReferralProgramSettings
from extensions import db, migrate
import os
import uuid
from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix
from logging_config import setup_logging, get_logger

# Configure logging as early as possible
setup_logging(app_name="referral-program", log_level=os.environ.get('LOG_LEVEL', 'INFO'))
logger = get_logger(__name__)


# Configure Sentry for production error tracking
def init_sentry():
    """Initialize Sentry error tracking in production."""
    sentry_dsn = os.environ.get('SENTRY_DSN')
    if sentry_dsn and os.environ.get('FLASK_ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration
        from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
        from sentry_sdk.integrations.celery import CeleryIntegration

        sentry_sdk.init(
            dsn=sentry_dsn,
            integrations=[
                FlaskIntegration(transaction_style='endpoint'),
                SqlalchemyIntegration(),
                CeleryIntegration()
            ],
            traces_sample_rate=0.1,
            environment=os.environ.get('FLASK_ENV', 'development'),
            release=os.environ.get('GIT_SHA', 'unknown')
        )
        logger.info("Sentry error tracking initialized")


init_sentry()


def create_app(config_name=None, test_config=None):
    """Create and configure an instance of the Flask application."""
    app = Flask(__name__)

    config_class = get_config(config_name)
    app.config.from_object(config_class)

    config_class.init_app(app)

    if test_config:
        app.config.update(test_config)

    app.json.sort_keys = False
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    db.init_app(app)
    migrate.init_app(app, db)

    settings = ReferralProgramSettings.from_mapping(app.config)

    # Service registry with lazy loading; nothing below is built until first use
    from services.service_registry_enhanced import ServiceRegistryEnhanced, ServiceLifecycle
    registry = ServiceRegistryEnhanced()

    registry.register('settings', service=settings)

    # db.session is itself scoped to the app context, so repositories can hold it
    registry.register_factory(
        'db_session',
        lambda: db.session,
        lifecycle=ServiceLifecycle.SCOPED
    )

    # Repositories
    registry.register_factory(
        'campaign_repository',
        lambda db_session: _create_campaign_repository(db_session),
        dependencies=['db_session']
    )

    registry.register_factory(
        'referrer_repository',
        lambda db_session: _create_referrer_repository(db_session),
        dependencies=['db_session']
    )

    registry.register_factory(
        'referral_repository',
        lambda db_session: _create_referral_repository(db_session),
        dependencies=['db_session']
    )

    # External integrations
    registry.register_factory(
        'hubspot',
        lambda settings: _create_hubspot_service(settings),
        dependencies=['settings']
    )

    registry.register_factory(
        'slack',
        lambda settings: _create_slack_service(settings),
        dependencies=['settings']
    )

    registry.register_factory(
        'notification_dispatcher',
        lambda hubspot, slack, settings: _create_notification_dispatcher(hubspot, slack, settings),
        dependencies=['hubspot', 'slack', 'settings']
    )

    # Domain services
    registry.register_factory(
        'campaign',
        lambda campaign_repository, settings: _create_campaign_service(campaign_repository, settings),
        dependencies=['campaign_repository', 'settings']
    )

    registry.register_factory(
        'referrer',
        lambda referrer_repository, referral_repository, campaign_repository, notification_dispatcher, settings:
            _create_referrer_service(
                referrer_repository, referral_repository, campaign_repository, notification_dispatcher, settings
            ),
        dependencies=['referrer_repository', 'referral_repository', 'campaign_repository',
                      'notification_dispatcher', 'settings']
    )

    registry.register_factory(
        'referral',
        lambda referral_repository, referrer_repository, campaign_repository, notification_dispatcher, settings:
            _create_referral_service(
                referral_repository, referrer_repository, campaign_repository, notification_dispatcher, settings
            ),
        dependencies=['referral_repository', 'referrer_repository', 'campaign_repository',
                      'notification_dispatcher', 'settings']
    )

    registry.register_factory(
        'admin_auth',
        lambda settings: _create_admin_auth_service(settings),
        dependencies=['settings']
    )

    registry.register_factory(
        'export',
        lambda referral, referrer: _create_export_service(referral, referrer),
        dependencies=['referral', 'referrer']
    )

    # Validate all dependencies are registered
    errors = registry.validate_dependencies()
    if errors:
        for error in errors:
            logger.error(f"Service dependency error: {error}")
        raise RuntimeError(f"Service dependency errors: {errors}")

    if app.debug:
        logger.debug("Service initialization order", order=registry.get_initialization_order())

    if app.config.get('FLASK_ENV') == 'production':
        registry.warmup(['settings', 'admin_auth', 'notification_dispatcher'])

    # Attach registry to app
    app.services = registry

    if app.config.get('AUTO_CREATE_TABLES') or app.config.get('SEED_DEFAULT_CAMPAIGN'):
        _prepare_database(app)

    # Add request tracking middleware
    @app.before_request
    def before_request():
        g.request_id = str(uuid.uuid4())
        logger.info("Request started",
                    request_id=g.request_id,
                    method=request.method,
                    path=request.path)

    @app.after_request
    def after_request(response):
        logger.info("Request completed",
                    request_id=getattr(g, 'request_id', None),
                    status_code=response.status_code)
        return response

    # Global error handlers; the API only ever speaks JSON
    @app.errorhandler(404)
    def not_found_error(error):
        logger.warning("Route not found",
                       request_id=getattr(g, 'request_id', None),
                       path=request.path)
        return jsonify({'error': 'Not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method not allowed'}), 405

    @app.errorhandler(500)
    def internal_error(error):
        original = getattr(error, 'original_exception', None) or error
        logger.error("Internal server error",
                     request_id=getattr(g, 'request_id', None),
                     error=str(original))
        return jsonify({'error': 'Something went wrong. Please try again.'}), 500

    @app.errorhandler(HTTPException)
    def http_error(error):
        return jsonify({'error': error.description}), error.code

    # Health check endpoint - no auth required
    @app.route('/health')
    def health_check():
        """Health check endpoint for monitoring"""
        health_status = {
            'status': 'healthy',
            'service': 'referral-program'
        }

        try:
            db.session.execute(text('SELECT 1'))
            health_status['database'] = 'connected'
        except SQLAlchemyError as e:
            health_status['database'] = 'error'
            health_status['status'] = 'degraded'
            logger.error("Health check database error", error=str(e))

        return jsonify(health_status), 200 if health_status['status'] == 'healthy' else 503

    # Register Blueprints
    from routes.public_routes import public_bp
    from routes.admin_routes import admin_bp

    app.register_blueprint(public_bp, url_prefix='/api')
    app.register_blueprint(admin_bp, url_prefix='/api/admin')

    # Register CLI commands
    from scripts import commands
    commands.init_app(app)

    return app


def _prepare_database(app):
    """Create tables (in-memory test databases) and seed the default campaign."""
    with app.app_context():
        try:
            if app.config.get('AUTO_CREATE_TABLES'):
                import referral_database  # noqa: F401  (registers models)
                db.create_all()

            if app.config.get('SEED_DEFAULT_CAMPAIGN'):
                if not inspect(db.engine).has_table('campaign'):
                    logger.warning("Campaign table missing, run migrations before seeding")
                    return
                app.services.get('campaign').ensure_default_campaign()
        except SQLAlchemyError as e:
            logger.error("Database preparation failed", error=str(e))


# Service Factory Functions
# These are only called when the service is first requested

def _create_campaign_repository(db_session):
    from repositories.campaign_repository import CampaignRepository
    return CampaignRepository(session=db_session)


def _create_referrer_repository(db_session):
    from repositories.referrer_repository import ReferrerRepository
    return ReferrerRepository(session=db_session)


def _create_referral_repository(db_session):
    from repositories.referral_repository import ReferralRepository
    return ReferralRepository(session=db_session)


def _create_hubspot_service(settings):
    """Create HubSpotService from settings"""
    from services.hubspot_service import HubSpotService
    logger.info("Initializing HubSpotService")
    return HubSpotService(
        portal_id=settings.hubspot_portal_id,
        form_guid=settings.hubspot_form_guid,
        friend_form_guid=settings.hubspot_friend_form_guid,
        access_token=settings.hubspot_access_token,
        page_uri=settings.base_url,
        timeout=settings.notification_timeout_seconds
    )


def _create_slack_service(settings):
    """Create SlackService from settings"""
    from services.slack_service import SlackService
    logger.info("Initializing SlackService")
    return SlackService(
        webhook_url=settings.slack_webhook_url,
        timeout=settings.notification_timeout_seconds
    )


def _create_notification_dispatcher(hubspot, slack, settings):
    from services.notification_dispatcher import NotificationDispatcher
    logger.info("Initializing NotificationDispatcher", async_enabled=settings.notifications_async)
    return NotificationDispatcher(
        hubspot_service=hubspot,
        slack_service=slack,
        async_enabled=settings.notifications_async
    )


def _create_campaign_service(campaign_repository, settings):
    """Create CampaignService with repository"""
    from services.campaign_service import CampaignService
    logger.info("Initializing CampaignService")
    return CampaignService(
        campaign_repository=campaign_repository,
        default_campaign_id=settings.default_campaign_id
    )


def _create_referrer_service(referrer_repository, referral_repository, campaign_repository,
                             notification_dispatcher, settings):
    """Create ReferrerService with repositories"""
    from services.referrer_service import ReferrerService
    logger.info("Initializing ReferrerService")
    return ReferrerService(
        referrer_repository=referrer_repository,
        referral_repository=referral_repository,
        campaign_repository=campaign_repository,
        notification_dispatcher=notification_dispatcher,
        base_url=settings.base_url,
        default_campaign_id=settings.default_campaign_id
    )


def _create_referral_service(referral_repository, referrer_repository, campaign_repository,
                             notification_dispatcher, settings):
    """Create ReferralService with repositories"""
    from services.referral_service import ReferralService
    logger.info("Initializing ReferralService", transition_policy=settings.transition_policy.value)
    return ReferralService(
        referral_repository=referral_repository,
        referrer_repository=referrer_repository,
        campaign_repository=campaign_repository,
        notification_dispatcher=notification_dispatcher,
        booking_url=settings.booking_url,
        reward_window_days=settings.reward_window_days,
        transition_policy=settings.transition_policy
    )


def _create_admin_auth_service(settings):
    from services.admin_auth_service import AdminAuthService
    return AdminAuthService(
        admin_password=settings.admin_password,
        cookie_name=settings.admin_cookie_name,
        cookie_max_age=settings.admin_cookie_max_age,
        cookie_secure=settings.admin_cookie_secure
    )


def _create_export_service(referral, referrer):
    from services.export_service import ExportService
    return ExportService(referral_service=referral, referrer_service=referrer)


if __name__ == '__main__':
    app = create_app()
    app.run(debug=True)
