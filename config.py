import os
import secrets
from dataclasses import dataclass
from dotenv import load_dotenv
from typing import Optional, Mapping, Any

from services.enums import TransitionPolicy

# Find the absolute path of the root directory
basedir = os.path.abspath(os.path.dirname(__file__))

# Load the .env file from the root directory
load_dotenv(os.path.join(basedir, '.env'))

DEFAULT_CAMPAIGN_ID = '00000000-0000-0000-0000-000000000001'


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid"""
    pass


def _env_bool(key: str, default: str = 'false') -> bool:
    return os.environ.get(key, default).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """
    Base configuration class. Contains default configuration settings
    and settings applicable to all environments.
    """
    SECRET_KEY = os.environ.get('SECRET_KEY') or secrets.token_hex(32)
    FLASK_ENV = os.environ.get('FLASK_ENV')

    # Database settings
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or os.environ.get('POSTGRES_URI') or \
        'sqlite:///' + os.path.join(basedir, 'referrals.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Public site
    BASE_URL = os.environ.get('BASE_URL', 'http://localhost:3000')
    BOOKING_URL = os.environ.get('BOOKING_URL', 'https://myedspace.com/pages/myedspace-learn-with-eddie')
    DEFAULT_CAMPAIGN_ID = os.environ.get('DEFAULT_CAMPAIGN_ID', DEFAULT_CAMPAIGN_ID)

    # Admin panel: one shared password, stored client-side in an httpOnly cookie
    ADMIN_PASSWORD = os.environ.get('ADMIN_PASSWORD')
    ADMIN_COOKIE_NAME = 'admin_auth'
    ADMIN_COOKIE_MAX_AGE = 60 * 60 * 24  # 24 hours
    ADMIN_COOKIE_SECURE = False
    LOGIN_DISABLED = False

    # Referral lifecycle
    REWARD_WINDOW_DAYS = int(os.environ.get('REWARD_WINDOW_DAYS', '30'))
    REFERRAL_TRANSITION_POLICY = os.environ.get('REFERRAL_TRANSITION_POLICY', TransitionPolicy.STRICT.value)

    # HubSpot
    HUBSPOT_PORTAL_ID = os.environ.get('HUBSPOT_PORTAL_ID')
    HUBSPOT_FORM_GUID = os.environ.get('HUBSPOT_FORM_GUID')
    HUBSPOT_FRIEND_FORM_GUID = os.environ.get('HUBSPOT_FRIEND_FORM_GUID')
    HUBSPOT_ACCESS_TOKEN = os.environ.get('HUBSPOT_ACCESS_TOKEN')

    # Slack
    SLACK_WEBHOOK_URL = os.environ.get('SLACK_WEBHOOK_URL')

    # Notifications go through Celery unless disabled
    NOTIFICATIONS_ASYNC = _env_bool('NOTIFICATIONS_ASYNC', 'true')
    NOTIFICATION_TIMEOUT_SECONDS = float(os.environ.get('NOTIFICATION_TIMEOUT_SECONDS', '5'))

    # Celery reads the uppercase names and maps them to its lowercase settings.
    CELERY_BROKER_URL = os.environ.get('REDIS_URL') or 'redis://redis:6379/0'
    CELERY_RESULT_BACKEND = os.environ.get('REDIS_URL') or 'redis://redis:6379/0'

    AUTO_CREATE_TABLES = False
    SEED_DEFAULT_CAMPAIGN = False

    @classmethod
    def validate_required_config(cls) -> None:
        """Validate that all required configuration is present"""
        if os.environ.get('FLASK_ENV') == 'testing' or os.environ.get('SKIP_ENV_VALIDATION'):
            return

        required_vars = ['ADMIN_PASSWORD']
        if not (os.environ.get('DATABASE_URL') or os.environ.get('POSTGRES_URI')):
            required_vars.append('DATABASE_URL')

        missing_vars = [var for var in required_vars if not os.environ.get(var)]
        if missing_vars:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing_vars)}"
            )

    @staticmethod
    def get_required_env(key: str) -> str:
        """Get required environment variable or raise error"""
        value = os.environ.get(key)
        if not value:
            raise ConfigurationError(f"Required environment variable {key} is not set")
        return value

    @classmethod
    def init_app(cls, app):
        """Initialize application with this config"""
        pass


class DevelopmentConfig(Config):
    """Development environment configuration"""
    DEBUG = True
    TESTING = False

    SQLALCHEMY_DATABASE_URI = os.environ.get('DEV_DATABASE_URL') or Config.SQLALCHEMY_DATABASE_URI

    # No broker needed locally unless explicitly enabled
    NOTIFICATIONS_ASYNC = _env_bool('NOTIFICATIONS_ASYNC', 'false')

    SEED_DEFAULT_CAMPAIGN = True

    @classmethod
    def init_app(cls, app):
        """Development-specific initialization"""
        import logging
        from logging import StreamHandler
        stream_handler = StreamHandler()
        stream_handler.setLevel(logging.DEBUG)
        app.logger.addHandler(stream_handler)


class TestingConfig(Config):
    """Testing environment configuration"""
    TESTING = True
    DEBUG = True

    # Use in-memory SQLite for tests
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'

    BASE_URL = 'https://referrals.example.com'
    BOOKING_URL = 'https://example.com/book'
    ADMIN_PASSWORD = 'test-admin-password'
    REWARD_WINDOW_DAYS = 30
    REFERRAL_TRANSITION_POLICY = TransitionPolicy.STRICT.value

    # External services are never called from tests
    HUBSPOT_PORTAL_ID = None
    HUBSPOT_FORM_GUID = None
    HUBSPOT_FRIEND_FORM_GUID = None
    HUBSPOT_ACCESS_TOKEN = None
    SLACK_WEBHOOK_URL = None

    # Deliver inline so tests never need a broker
    NOTIFICATIONS_ASYNC = False
    CELERY_BROKER_URL = 'memory://'
    CELERY_RESULT_BACKEND = 'cache+memory://'

    # In-memory database starts empty on every app
    AUTO_CREATE_TABLES = True
    SEED_DEFAULT_CAMPAIGN = True

    @classmethod
    def init_app(cls, app):
        """Enforce foreign keys on SQLite so RESTRICT constraints behave like Postgres"""
        from sqlalchemy import event
        from sqlalchemy.engine import Engine

        if not event.contains(Engine, "connect", _enable_sqlite_foreign_keys):
            event.listen(Engine, "connect", _enable_sqlite_foreign_keys)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    if 'sqlite' in type(dbapi_connection).__module__:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class ProductionConfig(Config):
    """Production environment configuration"""
    DEBUG = False
    TESTING = False

    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or os.environ.get('POSTGRES_URI', '')
    ADMIN_COOKIE_SECURE = True

    REDIS_URL = os.environ.get('REDIS_URL', '')
    CELERY_BROKER_URL = os.environ.get('REDIS_URL', '')
    CELERY_RESULT_BACKEND = os.environ.get('REDIS_URL', '')

    # If using rediss:// (SSL), append required parameters
    if CELERY_BROKER_URL.startswith('rediss://') and 'ssl_cert_reqs' not in CELERY_BROKER_URL:
        separator = '&' if '?' in CELERY_BROKER_URL else '?'
        CELERY_BROKER_URL += f"{separator}ssl_cert_reqs=CERT_NONE"
        CELERY_RESULT_BACKEND += f"{separator}ssl_cert_reqs=CERT_NONE"

    @classmethod
    def init_app(cls, app):
        """Production-specific initialization"""
        cls.validate_required_config()

        # Log warnings to syslog in production
        import logging
        from logging.handlers import SysLogHandler
        syslog_handler = SysLogHandler()
        syslog_handler.setLevel(logging.WARNING)
        app.logger.addHandler(syslog_handler)


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}


def get_config(config_name: Optional[str] = None) -> type[Config]:
    """Get configuration class based on environment"""
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    return config.get(config_name, DevelopmentConfig)


@dataclass(frozen=True)
class ReferralProgramSettings:
    """
    Settings the referral services depend on.

    Built once from the Flask config in create_app() and injected into each
    service, so nothing reads configuration ad hoc while handling a request.
    """
    base_url: str
    booking_url: str
    default_campaign_id: str = DEFAULT_CAMPAIGN_ID
    admin_password: Optional[str] = None
    admin_cookie_name: str = 'admin_auth'
    admin_cookie_max_age: int = 60 * 60 * 24
    admin_cookie_secure: bool = False
    reward_window_days: int = 30
    transition_policy: TransitionPolicy = TransitionPolicy.STRICT
    hubspot_portal_id: Optional[str] = None
    hubspot_form_guid: Optional[str] = None
    hubspot_friend_form_guid: Optional[str] = None
    hubspot_access_token: Optional[str] = None
    slack_webhook_url: Optional[str] = None
    notifications_async: bool = True
    notification_timeout_seconds: float = 5.0

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> 'ReferralProgramSettings':
        """
        Build settings from a Flask config (or any mapping of config keys).

        Raises:
            ConfigurationError: If the transition policy is not recognised
        """
        policy_value = str(values.get('REFERRAL_TRANSITION_POLICY') or TransitionPolicy.STRICT.value).lower()
        try:
            policy = TransitionPolicy(policy_value)
        except ValueError:
            raise ConfigurationError(
                f"REFERRAL_TRANSITION_POLICY must be one of "
                f"{', '.join(p.value for p in TransitionPolicy)}, got {policy_value!r}"
            )

        return cls(
            base_url=values.get('BASE_URL') or 'http://localhost:3000',
            booking_url=values.get('BOOKING_URL') or '',
            default_campaign_id=values.get('DEFAULT_CAMPAIGN_ID') or DEFAULT_CAMPAIGN_ID,
            admin_password=values.get('ADMIN_PASSWORD'),
            admin_cookie_name=values.get('ADMIN_COOKIE_NAME') or 'admin_auth',
            admin_cookie_max_age=int(values.get('ADMIN_COOKIE_MAX_AGE') or 60 * 60 * 24),
            admin_cookie_secure=bool(values.get('ADMIN_COOKIE_SECURE', False)),
            reward_window_days=int(values.get('REWARD_WINDOW_DAYS') or 30),
            transition_policy=policy,
            hubspot_portal_id=values.get('HUBSPOT_PORTAL_ID'),
            hubspot_form_guid=values.get('HUBSPOT_FORM_GUID'),
            hubspot_friend_form_guid=values.get('HUBSPOT_FRIEND_FORM_GUID'),
            hubspot_access_token=values.get('HUBSPOT_ACCESS_TOKEN'),
            slack_webhook_url=values.get('SLACK_WEBHOOK_URL'),
            notifications_async=bool(values.get('NOTIFICATIONS_ASYNC', True)),
            notification_timeout_seconds=float(values.get('NOTIFICATION_TIMEOUT_SECONDS') or 5.0),
        )
