"""
Periodic referral lifecycle tasks
"""

from typing import Dict, Any

from flask import current_app

from celery_worker import celery
from logging_config import get_logger
from utils.datetime_utils import utc_now

logger = get_logger(__name__)


@celery.task
def remind_referrals_due_for_qualification() -> Dict[str, Any]:
    """
    Post a Slack summary of purchased referrals whose reward window has
    elapsed, so someone reviews and marks them qualified.
    """
    now = utc_now()
    referral_service = current_app.services.get('referral')
    due = referral_service.get_due_for_qualification(as_of=now)

    if not due:
        logger.info("No referrals due for qualification")
        return {'success': True, 'due': 0, 'notified': False, 'timestamp': now.isoformat()}

    slack = current_app.services.get('slack')
    result = slack.notify_referrals_due([referral.to_dict() for referral in due])
    if result.is_failure:
        logger.warning("Due-referral reminder not delivered", due=len(due), error=result.error)
    else:
        logger.info("Due-referral reminder sent", due=len(due))

    return {
        'success': result.is_success,
        'due': len(due),
        'notified': result.is_success,
        'timestamp': now.isoformat(),
    }
