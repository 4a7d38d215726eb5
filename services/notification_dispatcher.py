"""
NotificationDispatcher - best-effort HubSpot / Slack delivery

dispatch() is fire-and-forget: it hands the event to Celery (or delivers
inline when async delivery is off) and never raises. deliver() does the
actual outbound calls and is what the Celery task runs.
"""

from typing import Dict, Any, Optional, Union

from logging_config import get_logger
from services.common.result import Result
from services.enums import NotificationEvent, ErrorCode
from services.hubspot_service import HubSpotService
from services.slack_service import SlackService

logger = get_logger(__name__)


class NotificationDispatcher:
    """Routes referral events to HubSpot and Slack"""

    def __init__(self,
                 hubspot_service: HubSpotService,
                 slack_service: SlackService,
                 async_enabled: bool = True):
        self.hubspot_service = hubspot_service
        self.slack_service = slack_service
        self.async_enabled = async_enabled

    def dispatch(self, event: Union[NotificationEvent, str], payload: Dict[str, Any]) -> None:
        """
        Queue (or inline-deliver) a notification. Errors are logged, never raised.

        Args:
            event: NotificationEvent or its string value
            payload: JSON-serializable event data
        """
        event_name = event.value if isinstance(event, NotificationEvent) else str(event)

        try:
            if self.async_enabled:
                from tasks.notification_tasks import deliver_notification
                deliver_notification.delay(event_name, payload)
                logger.info("Notification queued", notification_event=event_name)
                return

            result = self.deliver(event_name, payload)
            if result.is_failure:
                logger.warning(
                    "Notification delivery incomplete",
                    notification_event=event_name,
                    error=result.error,
                )
        except Exception as e:
            logger.error(
                "Notification dispatch failed",
                notification_event=event_name,
                error=str(e),
                exc_info=True,
            )

    def deliver(self, event: Union[NotificationEvent, str], payload: Dict[str, Any]) -> Result[Dict[str, bool]]:
        """
        Perform the outbound calls for an event.

        Returns:
            Success with per-channel outcome when every attempted channel
            succeeded, otherwise a failure carrying the same outcome in metadata
        """
        try:
            event = NotificationEvent(event)
        except ValueError:
            return Result.failure(f"Unknown notification event: {event}", code=ErrorCode.INVALID_ACTION)

        handlers = {
            NotificationEvent.REFERRER_REGISTERED: self._deliver_referrer_registered,
            NotificationEvent.REFERRAL_CREATED: self._deliver_referral_created,
            NotificationEvent.REFERRAL_QUALIFIED: self._deliver_referral_qualified,
        }
        outcomes = handlers[event](payload)

        failed = {channel: result.error for channel, result in outcomes.items() if result.is_failure}
        summary = {channel: result.is_success for channel, result in outcomes.items()}
        if failed:
            return Result.failure(
                "; ".join(f"{channel}: {error}" for channel, error in failed.items()),
                code=ErrorCode.EXTERNAL_SERVICE_ERROR,
                metadata=summary,
            )
        logger.info("Notification delivered", notification_event=event.value, channels=summary)
        return Result.success(summary)

    def _deliver_referrer_registered(self, payload: Dict[str, Any]) -> Dict[str, Result]:
        return {
            'hubspot': self.hubspot_service.submit_referrer(
                email=payload['email'],
                name=payload['name'],
                referral_link=payload['referral_link'],
                portal_id=payload.get('hubspot_portal_id'),
                form_guid=payload.get('hubspot_form_guid'),
            )
        }

    def _deliver_referral_created(self, payload: Dict[str, Any]) -> Dict[str, Result]:
        return {
            'hubspot': self.hubspot_service.submit_referred_friend(
                email=payload['friend_email'],
                name=payload['friend_name'],
                phone=payload.get('friend_phone'),
                referrer_email=payload['referrer_email'],
                child_grade=payload.get('child_grade'),
                custom_fields=payload.get('custom_fields'),
                portal_id=payload.get('hubspot_portal_id'),
                form_guid=payload.get('hubspot_form_guid'),
            ),
            'slack': self.slack_service.notify_new_referral(
                payload['referrer_name'],
                payload['friend_name'],
                payload['friend_email'],
            ),
        }

    def _deliver_referral_qualified(self, payload: Dict[str, Any]) -> Dict[str, Result]:
        return {
            'slack': self.slack_service.notify_referral_qualified(
                payload['referrer_name'],
                payload['referrer_email'],
                payload['friend_name'],
                payload.get('reward'),
            ),
            'hubspot': self.hubspot_service.update_contact_property(
                payload['referrer_email'],
                {
                    'referral_status': 'qualified',
                    'referred_friend_name': payload['friend_name'],
                },
            ),
        }


def build_referral_payload(referral, campaign: Optional[Any] = None) -> Dict[str, Any]:
    """Event payload shared by referral_created and referral_qualified."""
    payload = {
        'referral_id': referral.id,
        'referrer_name': referral.referrer_name,
        'referrer_email': referral.referrer_email,
        'friend_name': referral.referred_name,
        'friend_email': referral.referred_email,
        'friend_phone': referral.referred_phone,
        'child_grade': referral.referred_child_grade,
        'custom_fields': dict(referral.custom_fields or {}),
    }
    if campaign is not None:
        payload.update({
            'campaign_slug': campaign.slug,
            'reward': f"{campaign.reward_amount} {campaign.reward_type}".strip(),
            'hubspot_portal_id': campaign.hubspot_portal_id,
            'hubspot_form_guid': campaign.hubspot_friend_form_guid or campaign.hubspot_form_guid,
        })
    return payload
