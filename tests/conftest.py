# tests/conftest.py
"""
Shared fixtures for the pytest suite.

Every test gets its own application with a fresh in-memory SQLite database:
TestingConfig creates the tables and seeds the default campaign inside
create_app(), so nothing has to be rolled back between tests.
"""
import os

# Must be set before anything imports celery_worker, which builds an app at import
os.environ['FLASK_ENV'] = 'testing'

import pytest

from app import create_app
from config import DEFAULT_CAMPAIGN_ID
from extensions import db
from referral_database import Campaign, Referrer, Referral
from services.campaign_service import DEFAULT_CAMPAIGN_COPY, DEFAULT_STANDARD_FIELDS
from utils.datetime_utils import utc_now
from utils.referral_codes import generate_referral_code, generate_referral_id

ADMIN_PASSWORD = 'test-admin-password'


@pytest.fixture
def app():
    """
    A Flask application for one test, with its app context pushed.

    The default campaign already exists.
    """
    app = create_app(config_name='testing')

    with app.app_context():
        yield app

        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_client(client):
    """A test client holding a valid admin_auth cookie"""
    response = client.post('/api/admin/auth', json={'password': ADMIN_PASSWORD})
    assert response.status_code == 200
    return client


@pytest.fixture
def db_session(app):
    return db.session


@pytest.fixture
def default_campaign(db_session):
    return db_session.get(Campaign, DEFAULT_CAMPAIGN_ID)


@pytest.fixture
def make_campaign(db_session):
    """Builder for persisted campaigns"""
    def _make(**kwargs):
        defaults = {
            'slug': 'spring-promo',
            'name': 'Spring Promo',
            'active': True,
            'reward_amount': '$100',
            'reward_type': 'Gift card',
            'copy': dict(DEFAULT_CAMPAIGN_COPY),
            'standard_fields': dict(DEFAULT_STANDARD_FIELDS),
            'custom_fields': [],
            'phone_format': 'international',
        }
        defaults.update(kwargs)
        campaign = Campaign(**defaults)
        db_session.add(campaign)
        db_session.commit()
        return campaign
    return _make


@pytest.fixture
def make_referrer(db_session):
    """Builder for persisted referrers (default campaign unless given)"""
    def _make(**kwargs):
        code = kwargs.pop('referral_code', None) or generate_referral_code()
        defaults = {
            'referral_code': code,
            'referral_link': f'https://referrals.example.com/default/refer?ref={code}',
            'email': 'jane@example.com',
            'name': 'Jane Doe',
            'total_referrals': 0,
            'campaign_id': DEFAULT_CAMPAIGN_ID,
        }
        defaults.update(kwargs)
        referrer = Referrer(**defaults)
        db_session.add(referrer)
        db_session.commit()
        return referrer
    return _make


@pytest.fixture
def make_referral(db_session):
    """Builder for persisted referrals (pending, default campaign unless given)"""
    def _make(**kwargs):
        now = utc_now()
        defaults = {
            'id': generate_referral_id(),
            'referrer_email': 'jane@example.com',
            'referrer_name': 'Jane Doe',
            'referred_email': 'sam@example.com',
            'referred_name': 'Sam Smith',
            'referred_phone': '+447700900123',
            'referred_child_grade': 'Year 6',
            'custom_fields': {},
            'campaign_id': DEFAULT_CAMPAIGN_ID,
            'status': 'pending',
            'signup_date': now,
            'notes': '',
            'created_at': now,
        }
        defaults.update(kwargs)
        referral = Referral(**defaults)
        db_session.add(referral)
        db_session.commit()
        return referral
    return _make
