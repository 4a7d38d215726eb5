"""
Unit tests for CampaignService with a mocked CampaignRepository
"""

from types import SimpleNamespace
from unittest.mock import Mock

import pytest
from sqlalchemy.exc import IntegrityError

from repositories.campaign_repository import CampaignRepository
from services.campaign_service import (
    CampaignService,
    DEFAULT_CAMPAIGN_COPY,
    DEFAULT_STANDARD_FIELDS,
    normalize_phone_format,
    validate_custom_field_definitions,
)
from services.enums import ErrorCode

DEFAULT_ID = '00000000-0000-0000-0000-000000000001'


def _apply_updates(entity, **updates):
    for key, value in updates.items():
        setattr(entity, key, value)
    return entity


@pytest.fixture
def campaign_repository():
    repository = Mock(spec=CampaignRepository)
    repository.slug_taken.return_value = False
    repository.create.side_effect = lambda **kwargs: SimpleNamespace(**{'id': 'new-id', **kwargs})
    repository.update.side_effect = _apply_updates
    return repository


@pytest.fixture
def service(campaign_repository):
    return CampaignService(campaign_repository=campaign_repository, default_campaign_id=DEFAULT_ID)


@pytest.fixture
def existing_campaign():
    return SimpleNamespace(
        id='c1',
        slug='spring',
        name='Spring',
        active=True,
        reward_amount='$100',
        reward_type='Gift card',
        copy=dict(DEFAULT_CAMPAIGN_COPY),
        standard_fields=dict(DEFAULT_STANDARD_FIELDS),
        custom_fields=[],
        hubspot_portal_id='111',
        hubspot_form_guid='form',
        hubspot_friend_form_guid=None,
        booking_url=None,
        phone_format='international',
    )


VALID_CREATE = {
    'slug': 'Spring Promo',
    'name': 'Spring Promo',
    'reward_amount': '$100',
    'reward_type': 'Gift card',
}


class TestCreate:

    def test_missing_required_fields(self, service, campaign_repository):
        result = service.create({'name': 'No slug'})

        assert result.is_failure
        assert result.error_code == ErrorCode.VALIDATION_ERROR.value
        assert result.error == "Missing required fields: slug, reward_amount, reward_type"
        campaign_repository.create.assert_not_called()

    def test_slug_is_sanitized_and_defaults_merged(self, service, campaign_repository):
        result = service.create({**VALID_CREATE, 'copy': {'referrer_page_title': 'Invite a friend'}})

        assert result.is_success
        kwargs = campaign_repository.create.call_args.kwargs
        assert kwargs['slug'] == 'spring-promo'
        assert kwargs['copy']['referrer_page_title'] == 'Invite a friend'
        assert kwargs['copy']['terms_content'] == DEFAULT_CAMPAIGN_COPY['terms_content']
        assert kwargs['standard_fields'] == {'phone': True, 'child_grade': True}
        assert kwargs['phone_format'] == 'international'
        assert kwargs['active'] is True
        assert 'id' not in kwargs
        campaign_repository.commit.assert_called_once()

    def test_caller_cannot_choose_the_id(self, service, campaign_repository):
        service.create({**VALID_CREATE, 'id': 'chosen'})
        assert 'id' not in campaign_repository.create.call_args.kwargs

    def test_duplicate_slug_is_conflict(self, service, campaign_repository):
        campaign_repository.slug_taken.return_value = True

        result = service.create(VALID_CREATE)

        assert result.is_failure
        assert result.error_code == ErrorCode.CONFLICT.value
        assert result.http_status == 400
        campaign_repository.create.assert_not_called()

    def test_slug_race_is_conflict(self, service, campaign_repository):
        campaign_repository.commit.side_effect = IntegrityError('INSERT', {}, Exception('UNIQUE'))

        result = service.create(VALID_CREATE)

        assert result.error_code == ErrorCode.CONFLICT.value

    @pytest.mark.parametrize('slug', ['   ', 5])
    def test_slug_that_sanitizes_to_empty_rejected(self, service, campaign_repository, slug):
        result = service.create({**VALID_CREATE, 'slug': slug})

        assert result.is_failure
        assert result.error_code == ErrorCode.VALIDATION_ERROR.value
        assert result.http_status == 400
        campaign_repository.slug_taken.assert_not_called()
        campaign_repository.create.assert_not_called()

    def test_invalid_custom_fields_rejected(self, service, campaign_repository):
        result = service.create({
            **VALID_CREATE,
            'custom_fields': [{'name': 'school', 'label': 'School', 'type': 'select'}],
        })

        assert result.is_failure
        assert result.error_code == ErrorCode.VALIDATION_ERROR.value
        campaign_repository.create.assert_not_called()

    def test_invalid_phone_format_rejected(self, service):
        result = service.create({**VALID_CREATE, 'phone_format': 'martian'})
        assert result.error_code == ErrorCode.VALIDATION_ERROR.value


class TestUpdate:

    def test_patch_only_touches_supplied_keys(self, service, campaign_repository, existing_campaign):
        campaign_repository.get_by_id.return_value = existing_campaign

        result = service.update('c1', {'name': 'Spring 2025', 'id': 'hijack', 'unknown': 'x'})

        assert result.is_success
        campaign_repository.update.assert_called_once_with(existing_campaign, name='Spring 2025')
        assert existing_campaign.id == 'c1'
        assert existing_campaign.reward_amount == '$100'

    def test_copy_is_replaced_wholesale(self, service, campaign_repository, existing_campaign):
        campaign_repository.get_by_id.return_value = existing_campaign

        service.update('c1', {'copy': {'referrer_page_title': 'Only this'}})

        assert existing_campaign.copy == {'referrer_page_title': 'Only this'}

    def test_unknown_campaign(self, service, campaign_repository):
        campaign_repository.get_by_id.return_value = None

        result = service.update('missing', {'name': 'x'})

        assert result.error_code == ErrorCode.NOT_FOUND.value

    def test_slug_conflict_excludes_self(self, service, campaign_repository, existing_campaign):
        campaign_repository.get_by_id.return_value = existing_campaign
        campaign_repository.slug_taken.return_value = True

        result = service.update('c1', {'slug': 'Autumn'})

        assert result.error_code == ErrorCode.CONFLICT.value
        campaign_repository.slug_taken.assert_called_once_with('autumn', exclude_id='c1')

    def test_required_field_cannot_be_blanked(self, service, campaign_repository, existing_campaign):
        campaign_repository.get_by_id.return_value = existing_campaign

        result = service.update('c1', {'reward_amount': ''})

        assert result.error_code == ErrorCode.VALIDATION_ERROR.value
        campaign_repository.update.assert_not_called()

    def test_empty_crm_ids_become_null(self, service, campaign_repository, existing_campaign):
        campaign_repository.get_by_id.return_value = existing_campaign

        service.update('c1', {'hubspot_portal_id': ''})

        assert existing_campaign.hubspot_portal_id is None


class TestDelete:

    def test_default_campaign_is_never_deletable(self, service, campaign_repository):
        result = service.delete(DEFAULT_ID)

        assert result.is_failure
        assert result.error == "Cannot delete the default campaign"
        assert result.error_code == ErrorCode.CONFLICT.value
        campaign_repository.delete.assert_not_called()

    def test_referenced_campaign_is_rejected(self, service, campaign_repository, existing_campaign):
        campaign_repository.get_by_id.return_value = existing_campaign
        campaign_repository.count_references.return_value = {'referrers': 1, 'referrals': 0}

        result = service.delete('c1')

        assert result.error_code == ErrorCode.CONFLICT.value
        assert result.metadata == {'referrers': 1, 'referrals': 0}
        campaign_repository.delete.assert_not_called()

    def test_unreferenced_campaign_is_deleted(self, service, campaign_repository, existing_campaign):
        campaign_repository.get_by_id.return_value = existing_campaign
        campaign_repository.count_references.return_value = {'referrers': 0, 'referrals': 0}

        result = service.delete('c1')

        assert result.is_success
        campaign_repository.delete.assert_called_once_with(existing_campaign)
        campaign_repository.commit.assert_called_once()

    def test_unknown_campaign(self, service, campaign_repository):
        campaign_repository.get_by_id.return_value = None
        assert service.delete('missing').error_code == ErrorCode.NOT_FOUND.value


class TestLookups:

    def test_get_by_slug_only_returns_active(self, service, campaign_repository):
        campaign_repository.find_by_slug.return_value = None

        result = service.get_by_slug('winter')

        assert result.error == "Campaign not found or inactive"
        campaign_repository.find_by_slug.assert_called_once_with('winter', active_only=True)

    def test_get_by_id(self, service, campaign_repository, existing_campaign):
        campaign_repository.get_by_id.return_value = existing_campaign
        assert service.get_by_id('c1').data is existing_campaign

    def test_stats_delegates(self, service, campaign_repository):
        campaign_repository.get_campaign_stats.return_value = {
            'referrers': 2, 'referrals': 3, 'qualified': 1, 'rewarded': 0
        }
        assert service.stats('c1')['referrals'] == 3


class TestDefaultCampaign:

    def test_existing_default_is_returned(self, service, campaign_repository, existing_campaign):
        campaign_repository.get_by_id.return_value = existing_campaign

        assert service.ensure_default_campaign() is existing_campaign
        campaign_repository.create.assert_not_called()

    def test_missing_default_is_seeded(self, service, campaign_repository):
        campaign_repository.get_by_id.return_value = None

        campaign = service.ensure_default_campaign()

        kwargs = campaign_repository.create.call_args.kwargs
        assert kwargs['id'] == DEFAULT_ID
        assert kwargs['slug'] == 'default'
        assert kwargs['reward_amount'] == '$150'
        assert campaign.name == 'Default Campaign'


class TestValidators:

    def test_phone_format_defaults_to_international(self):
        assert normalize_phone_format(None).data == 'international'
        assert normalize_phone_format('UK').data == 'uk'

    def test_custom_field_definitions_cleaned(self):
        result = validate_custom_field_definitions([
            {'name': 'school', 'label': 'School', 'required': 1, 'placeholder': 'e.g. Oakwood'},
            {'name': 'year', 'label': 'Year', 'type': 'select', 'options': [5, 6]},
        ])

        assert result.is_success
        assert result.data == [
            {'name': 'school', 'label': 'School', 'type': 'text', 'required': True, 'placeholder': 'e.g. Oakwood'},
            {'name': 'year', 'label': 'Year', 'type': 'select', 'required': False, 'options': ['5', '6']},
        ]

    @pytest.mark.parametrize('fields', [
        'not-a-list',
        [{'label': 'No name'}],
        [{'name': 'a', 'label': 'A'}, {'name': 'a', 'label': 'Again'}],
        [{'name': 'a', 'label': 'A', 'type': 'date'}],
    ])
    def test_custom_field_definitions_rejected(self, fields):
        assert validate_custom_field_definitions(fields).error_code == ErrorCode.VALIDATION_ERROR.value
