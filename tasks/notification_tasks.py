"""
Celery tasks for HubSpot / Slack notification delivery
"""

from typing import Dict, Any

from flask import current_app

from celery_worker import celery
from logging_config import get_logger

logger = get_logger(__name__)


@celery.task
def deliver_notification(event: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deliver one notification event. Best effort: failures are logged and
    reported in the return value, never retried.
    """
    try:
        dispatcher = current_app.services.get('notification_dispatcher')
        result = dispatcher.deliver(event, payload)
    except Exception as e:
        logger.error("Notification task failed", notification_event=event, error=str(e), exc_info=True)
        return {'success': False, 'event': event, 'error': str(e)}

    if result.is_failure:
        logger.warning("Notification delivered with errors", notification_event=event, error=result.error)
        return {
            'success': False,
            'event': event,
            'error': result.error,
            'channels': result.metadata or {},
        }

    return {'success': True, 'event': event, 'channels': result.data}
