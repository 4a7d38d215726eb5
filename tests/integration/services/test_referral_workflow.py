"""
End-to-end referral lifecycle against the real repositories and SQLite
"""

from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from config import DEFAULT_CAMPAIGN_ID
from repositories.campaign_repository import CampaignRepository
from repositories.referral_repository import ReferralRepository
from repositories.referrer_repository import ReferrerRepository
from services.campaign_service import CampaignService
from services.enums import ErrorCode, NotificationEvent, TransitionPolicy
from services.referral_service import ReferralService
from services.referrer_service import ReferrerService
from utils.datetime_utils import ensure_utc

PURCHASE_TIME = datetime(2025, 1, 1, tzinfo=timezone.utc)


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return Clock(PURCHASE_TIME)


@pytest.fixture
def dispatcher():
    return Mock()


@pytest.fixture
def repositories(db_session):
    return {
        'campaign': CampaignRepository(db_session),
        'referrer': ReferrerRepository(db_session),
        'referral': ReferralRepository(db_session),
    }


@pytest.fixture
def referrer_service(repositories, dispatcher):
    return ReferrerService(
        referrer_repository=repositories['referrer'],
        referral_repository=repositories['referral'],
        campaign_repository=repositories['campaign'],
        notification_dispatcher=dispatcher,
        base_url='https://referrals.example.com',
        default_campaign_id=DEFAULT_CAMPAIGN_ID,
    )


@pytest.fixture
def referral_service(repositories, dispatcher, clock):
    return ReferralService(
        referral_repository=repositories['referral'],
        referrer_repository=repositories['referrer'],
        campaign_repository=repositories['campaign'],
        notification_dispatcher=dispatcher,
        booking_url='https://example.com/book',
        clock=clock,
    )


@pytest.fixture
def campaign_service(repositories):
    return CampaignService(campaign_repository=repositories['campaign'], default_campaign_id=DEFAULT_CAMPAIGN_ID)


def test_full_lifecycle(referrer_service, referral_service, dispatcher, clock, db_session):
    referrer = referrer_service.register('jane@example.com', 'Jane Doe').data['referrer']

    referral = referral_service.create_referral(referrer.referral_code, 'Sam Smith', 'sam@example.com').data
    assert referral.status == 'pending'

    referral = referral_service.transition(referral.id, 'mark_purchased').data
    assert ensure_utc(referral.purchase_date) == PURCHASE_TIME
    assert ensure_utc(referral.reward_eligible_date) == datetime(2025, 1, 31, tzinfo=timezone.utc)

    assert referral_service.get_due_for_qualification(datetime(2025, 1, 30, tzinfo=timezone.utc)) == []
    due = referral_service.get_due_for_qualification(datetime(2025, 1, 31, tzinfo=timezone.utc))
    assert [r.id for r in due] == [referral.id]

    referral_service.transition(referral.id, 'mark_qualified')
    clock.now = datetime(2025, 2, 3, 10, 0, tzinfo=timezone.utc)
    referral = referral_service.transition(referral.id, 'mark_rewarded').data

    assert referral.status == 'rewarded'
    assert ensure_utc(referral.reward_issued_date) == clock.now
    assert referral_service.get_due_for_qualification(datetime(2025, 3, 1, tzinfo=timezone.utc)) == []

    events = [c.args[0] for c in dispatcher.dispatch.call_args_list]
    assert events == [
        NotificationEvent.REFERRER_REGISTERED,
        NotificationEvent.REFERRAL_CREATED,
        NotificationEvent.REFERRAL_QUALIFIED,
    ]

    db_session.refresh(referrer)
    assert referrer.total_referrals == 1


def test_registration_is_idempotent_and_case_insensitive(referrer_service, dispatcher):
    first = referrer_service.register('Jane@Example.com', 'Jane').data
    second = referrer_service.register('jane@example.COM', 'Someone Else').data

    assert first['is_existing'] is False
    assert second['is_existing'] is True
    assert second['referrer'].id == first['referrer'].id
    assert second['referrer'].name == 'Jane'
    assert dispatcher.dispatch.call_count == 1


def test_registration_round_trips_through_the_code(referrer_service):
    referrer = referrer_service.register('jane@example.com', 'Jane').data['referrer']

    looked_up = referrer_service.lookup_by_code(referrer.referral_code).data

    assert looked_up.email == 'jane@example.com'
    assert referrer.referral_link.endswith(f"/default/refer?ref={referrer.referral_code}")


def test_counter_tracks_every_referral(referrer_service, referral_service, db_session):
    referrer = referrer_service.register('jane@example.com', 'Jane').data['referrer']

    for friend in ('a@example.com', 'b@example.com', 'c@example.com'):
        assert referral_service.create_referral(referrer.referral_code, 'Friend', friend).is_success

    db_session.refresh(referrer)
    assert referrer.total_referrals == 3
    assert referral_service.get_stats()['pending'] == 3


def test_deleting_referrer_removes_their_referrals(referrer_service, referral_service, db_session):
    referrer = referrer_service.register('jane@example.com', 'Jane').data['referrer']
    referral_service.create_referral(referrer.referral_code, 'Sam', 'sam@example.com')

    result = referrer_service.delete('jane@example.com')

    assert result.data == {'referrers_deleted': 1, 'referrals_deleted': 1}
    assert referral_service.list_referrals() == []
    assert referrer_service.lookup_by_code(referrer.referral_code).error_code == ErrorCode.NOT_FOUND.value


def test_strict_policy_blocks_resurrecting_a_disqualified_referral(referrer_service, referral_service):
    referrer = referrer_service.register('jane@example.com', 'Jane').data['referrer']
    referral = referral_service.create_referral(referrer.referral_code, 'Sam', 'sam@example.com').data
    referral_service.transition(referral.id, 'disqualify', notes='Refunded')

    result = referral_service.transition(referral.id, 'mark_purchased')

    assert result.error_code == ErrorCode.INVALID_TRANSITION.value
    assert referral_service.get_referral(referral.id).data.status == 'disqualified'


def test_permissive_policy_allows_any_action(repositories, referrer_service, clock):
    service = ReferralService(
        referral_repository=repositories['referral'],
        referrer_repository=repositories['referrer'],
        campaign_repository=repositories['campaign'],
        transition_policy=TransitionPolicy.PERMISSIVE,
        clock=clock,
    )
    referrer = referrer_service.register('jane@example.com', 'Jane').data['referrer']
    referral = service.create_referral(referrer.referral_code, 'Sam', 'sam@example.com').data

    assert service.transition(referral.id, 'mark_rewarded').data.status == 'rewarded'
    assert service.transition(referral.id, 'mark_purchased').data.status == 'purchased'


def test_campaign_scoped_registration(campaign_service, referrer_service, referral_service):
    campaign = campaign_service.create({
        'slug': 'spring', 'name': 'Spring', 'reward_amount': '$100', 'reward_type': 'Gift card',
        'booking_url': 'https://example.com/spring?src=promo',
    }).data

    referrer = referrer_service.register('jane@example.com', 'Jane', campaign_slug='spring').data['referrer']
    default_registration = referrer_service.register('jane@example.com', 'Jane').data['referrer']
    result = referral_service.create_referral(referrer.referral_code, 'Sam', 'sam@example.com')

    assert referrer.campaign_id == campaign.id
    assert default_registration.id != referrer.id
    assert result.data.campaign_id == campaign.id
    assert result.metadata['booking_url'].startswith('https://example.com/spring?src=promo&utm_source=referral')


def test_campaign_delete_guards(campaign_service, referrer_service):
    campaign = campaign_service.create({
        'slug': 'spring', 'name': 'Spring', 'reward_amount': '$100', 'reward_type': 'Gift card',
    }).data
    referrer_service.register('jane@example.com', 'Jane', campaign_id=campaign.id)

    assert campaign_service.delete(DEFAULT_CAMPAIGN_ID).error_code == ErrorCode.CONFLICT.value
    assert campaign_service.delete(campaign.id).error_code == ErrorCode.CONFLICT.value

    referrer_service.delete('jane@example.com')
    assert campaign_service.delete(campaign.id).is_success
    assert campaign_service.get_by_id(campaign.id).error_code == ErrorCode.NOT_FOUND.value
