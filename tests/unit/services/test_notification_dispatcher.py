"""
Unit tests for NotificationDispatcher routing and error containment
"""

from types import SimpleNamespace
from unittest.mock import Mock

import pytest

from services.common.result import Result
from services.enums import ErrorCode, NotificationEvent
from services.hubspot_service import HubSpotService
from services.notification_dispatcher import NotificationDispatcher, build_referral_payload
from services.slack_service import SlackService

REFERRAL_PAYLOAD = {
    'referral_id': 'ref_1',
    'referrer_name': 'Jane Doe',
    'referrer_email': 'jane@example.com',
    'friend_name': 'Sam Smith',
    'friend_email': 'sam@example.com',
    'friend_phone': '+447700900123',
    'child_grade': 'Year 6',
    'custom_fields': {'school': 'Oakwood'},
    'campaign_slug': 'default',
    'reward': '$150 Amazon voucher',
    'hubspot_portal_id': '12345',
    'hubspot_form_guid': 'friend-form',
}


@pytest.fixture
def hubspot():
    service = Mock(spec=HubSpotService)
    service.submit_referrer.return_value = Result.success(True)
    service.submit_referred_friend.return_value = Result.success(True)
    service.update_contact_property.return_value = Result.success(True)
    return service


@pytest.fixture
def slack():
    service = Mock(spec=SlackService)
    service.notify_new_referral.return_value = Result.success(True)
    service.notify_referral_qualified.return_value = Result.success(True)
    return service


@pytest.fixture
def dispatcher(hubspot, slack):
    return NotificationDispatcher(hubspot_service=hubspot, slack_service=slack, async_enabled=False)


class TestDeliver:

    def test_referrer_registered_goes_to_hubspot(self, dispatcher, hubspot, slack):
        result = dispatcher.deliver(NotificationEvent.REFERRER_REGISTERED, {
            'email': 'jane@example.com',
            'name': 'Jane Doe',
            'referral_link': 'https://r.example.com/default/refer?ref=x',
            'hubspot_portal_id': None,
            'hubspot_form_guid': None,
        })

        assert result.data == {'hubspot': True}
        hubspot.submit_referrer.assert_called_once_with(
            email='jane@example.com',
            name='Jane Doe',
            referral_link='https://r.example.com/default/refer?ref=x',
            portal_id=None,
            form_guid=None,
        )
        slack.notify.assert_not_called()

    def test_referral_created_goes_to_both_channels(self, dispatcher, hubspot, slack):
        result = dispatcher.deliver('referral_created', REFERRAL_PAYLOAD)

        assert result.data == {'hubspot': True, 'slack': True}
        hubspot.submit_referred_friend.assert_called_once_with(
            email='sam@example.com',
            name='Sam Smith',
            phone='+447700900123',
            referrer_email='jane@example.com',
            child_grade='Year 6',
            custom_fields={'school': 'Oakwood'},
            portal_id='12345',
            form_guid='friend-form',
        )
        slack.notify_new_referral.assert_called_once_with('Jane Doe', 'Sam Smith', 'sam@example.com')

    def test_referral_qualified_tags_referrer_in_crm(self, dispatcher, hubspot, slack):
        dispatcher.deliver('referral_qualified', REFERRAL_PAYLOAD)

        slack.notify_referral_qualified.assert_called_once_with(
            'Jane Doe', 'jane@example.com', 'Sam Smith', '$150 Amazon voucher'
        )
        hubspot.update_contact_property.assert_called_once_with(
            'jane@example.com',
            {'referral_status': 'qualified', 'referred_friend_name': 'Sam Smith'},
        )

    def test_partial_failure_reports_every_channel(self, dispatcher, hubspot):
        hubspot.submit_referred_friend.return_value = Result.failure(
            "HubSpot returned 500", code=ErrorCode.EXTERNAL_SERVICE_ERROR
        )

        result = dispatcher.deliver('referral_created', REFERRAL_PAYLOAD)

        assert result.is_failure
        assert result.error_code == ErrorCode.EXTERNAL_SERVICE_ERROR.value
        assert result.metadata == {'hubspot': False, 'slack': True}
        assert 'hubspot: HubSpot returned 500' in result.error

    def test_unknown_event(self, dispatcher):
        assert dispatcher.deliver('referral_exploded', {}).error_code == ErrorCode.INVALID_ACTION.value


class TestDispatch:

    def test_sync_dispatch_delivers_inline(self, dispatcher, slack):
        dispatcher.dispatch(NotificationEvent.REFERRAL_CREATED, REFERRAL_PAYLOAD)
        slack.notify_new_referral.assert_called_once()

    def test_sync_dispatch_swallows_exceptions(self, dispatcher, slack):
        slack.notify_new_referral.side_effect = RuntimeError('socket closed')

        dispatcher.dispatch(NotificationEvent.REFERRAL_CREATED, REFERRAL_PAYLOAD)

    def test_sync_dispatch_swallows_failed_results(self, dispatcher, hubspot):
        hubspot.submit_referrer.return_value = Result.failure("nope", code=ErrorCode.NOT_CONFIGURED)

        dispatcher.dispatch('referrer_registered', {
            'email': 'jane@example.com', 'name': 'Jane', 'referral_link': 'link',
        })

    def test_async_dispatch_queues_celery_task(self, hubspot, slack, mocker):
        task = mocker.patch('tasks.notification_tasks.deliver_notification')
        dispatcher = NotificationDispatcher(hubspot, slack, async_enabled=True)

        dispatcher.dispatch(NotificationEvent.REFERRAL_QUALIFIED, REFERRAL_PAYLOAD)

        task.delay.assert_called_once_with('referral_qualified', REFERRAL_PAYLOAD)
        slack.notify_referral_qualified.assert_not_called()

    def test_async_dispatch_swallows_broker_errors(self, hubspot, slack, mocker):
        task = mocker.patch('tasks.notification_tasks.deliver_notification')
        task.delay.side_effect = ConnectionError('redis unavailable')
        dispatcher = NotificationDispatcher(hubspot, slack, async_enabled=True)

        dispatcher.dispatch(NotificationEvent.REFERRAL_CREATED, REFERRAL_PAYLOAD)


def test_build_referral_payload():
    referral = SimpleNamespace(
        id='ref_1',
        referrer_name='Jane Doe',
        referrer_email='jane@example.com',
        referred_name='Sam Smith',
        referred_email='sam@example.com',
        referred_phone=None,
        referred_child_grade='Year 6',
        custom_fields=None,
    )
    campaign = SimpleNamespace(
        slug='spring',
        reward_amount='$100',
        reward_type='Gift card',
        hubspot_portal_id='12345',
        hubspot_form_guid='referrer-form',
        hubspot_friend_form_guid=None,
    )

    assert build_referral_payload(referral) == {
        'referral_id': 'ref_1',
        'referrer_name': 'Jane Doe',
        'referrer_email': 'jane@example.com',
        'friend_name': 'Sam Smith',
        'friend_email': 'sam@example.com',
        'friend_phone': None,
        'child_grade': 'Year 6',
        'custom_fields': {},
    }

    payload = build_referral_payload(referral, campaign)
    assert payload['reward'] == '$100 Gift card'
    assert payload['campaign_slug'] == 'spring'
    assert payload['hubspot_form_guid'] == 'referrer-form'
