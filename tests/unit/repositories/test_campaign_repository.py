"""
CampaignRepository tests against the in-memory SQLite database
"""

import pytest
from sqlalchemy.exc import IntegrityError

from config import DEFAULT_CAMPAIGN_ID
from repositories.campaign_repository import CampaignRepository


@pytest.fixture
def repository(db_session):
    return CampaignRepository(db_session)


def test_default_campaign_is_seeded(repository):
    campaign = repository.find_by_slug('default')

    assert campaign is not None
    assert campaign.id == DEFAULT_CAMPAIGN_ID
    assert campaign.is_default is True


def test_find_by_slug_active_only(repository, make_campaign):
    make_campaign(slug='winter', active=False)

    assert repository.find_by_slug('winter').slug == 'winter'
    assert repository.find_by_slug('winter', active_only=True) is None


def test_slug_taken_excludes_self(repository, make_campaign):
    campaign = make_campaign(slug='spring')

    assert repository.slug_taken('spring') is True
    assert repository.slug_taken('spring', exclude_id=campaign.id) is False
    assert repository.slug_taken('autumn') is False


def test_duplicate_slug_violates_unique_constraint(repository, make_campaign):
    make_campaign(slug='spring')

    with pytest.raises(IntegrityError):
        repository.create(
            slug='spring', name='Copy', reward_amount='$1', reward_type='Voucher',
        )


def test_create_generates_uuid(repository):
    campaign = repository.create(slug='summer', name='Summer', reward_amount='$50', reward_type='Voucher')

    assert len(campaign.id) == 36
    assert campaign.active is True
    assert campaign.copy == {}


def test_list_campaigns_active_only(repository, make_campaign):
    make_campaign(slug='on')
    make_campaign(slug='off', active=False)

    slugs = {campaign.slug for campaign in repository.list_campaigns(active_only=True)}

    assert slugs == {'default', 'on'}
    assert len(repository.list_campaigns()) == 3


def test_count_references_and_stats(repository, make_campaign, make_referrer, make_referral):
    campaign = make_campaign(slug='spring')
    make_referrer(campaign_id=campaign.id)
    make_referral(campaign_id=campaign.id, status='qualified')
    make_referral(campaign_id=campaign.id, status='rewarded', referred_email='ann@example.com')
    make_referral(campaign_id=campaign.id, status='pending', referred_email='bo@example.com')

    assert repository.count_references(campaign.id) == {'referrers': 1, 'referrals': 3}
    assert repository.get_campaign_stats(campaign.id) == {
        'referrers': 1, 'referrals': 3, 'qualified': 1, 'rewarded': 1,
    }
    assert repository.count_references(DEFAULT_CAMPAIGN_ID) == {'referrers': 0, 'referrals': 0}


def test_referenced_campaign_cannot_be_removed_in_sql(repository, make_campaign, make_referrer, db_session):
    campaign = make_campaign(slug='spring')
    make_referrer(campaign_id=campaign.id)

    with pytest.raises(IntegrityError):
        repository.delete(campaign)
        repository.commit()
