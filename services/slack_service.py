"""
Slack incoming-webhook notifications for the referral team.
"""

import time
from typing import List, Optional

import requests

from logging_config import get_logger, performance_logger
from services.common.result import Result
from services.enums import ErrorCode

logger = get_logger(__name__)

DEFAULT_REWARD_DESCRIPTION = '$150 Amazon voucher'


class SlackService:
    """Posts plain-text messages to a Slack incoming webhook"""

    def __init__(self, webhook_url: Optional[str] = None, timeout: float = 5.0):
        self.webhook_url = webhook_url
        self.timeout = timeout

    def notify(self, message: str) -> Result[bool]:
        """Post ``{"text": message}`` to the webhook."""
        if not self.webhook_url:
            logger.warning("Slack webhook URL not configured, skipping notification")
            return Result.failure("Slack webhook URL not configured", code=ErrorCode.NOT_CONFIGURED)

        started = time.monotonic()
        status_code = None
        try:
            response = requests.post(
                self.webhook_url,
                json={'text': message},
                timeout=self.timeout,
            )
            status_code = response.status_code
        except requests.exceptions.RequestException as e:
            logger.error("Slack notification failed", error=str(e))
            return Result.failure(f"Slack notification failed: {e}", code=ErrorCode.EXTERNAL_SERVICE_ERROR)
        finally:
            performance_logger.log_api_call(
                'slack', 'webhook', (time.monotonic() - started) * 1000, status_code
            )

        if not response.ok:
            logger.error("Slack rejected notification", status_code=response.status_code)
            return Result.failure(
                f"Slack returned {response.status_code}",
                code=ErrorCode.EXTERNAL_SERVICE_ERROR,
            )
        return Result.success(True)

    def notify_new_referral(self, referrer_name: str, friend_name: str, friend_email: str) -> Result[bool]:
        return self.notify(build_new_referral_message(referrer_name, friend_name, friend_email))

    def notify_referral_qualified(self, referrer_name: str, referrer_email: str, friend_name: str,
                                  reward: Optional[str] = None) -> Result[bool]:
        return self.notify(
            build_referral_qualified_message(referrer_name, referrer_email, friend_name, reward)
        )

    def notify_referrals_due(self, referrals: List[dict]) -> Result[bool]:
        return self.notify(build_referrals_due_message(referrals))


def build_new_referral_message(referrer_name: str, friend_name: str, friend_email: str) -> str:
    return (
        ":star: *New Referral Signup!*\n\n"
        f"*Referrer:* {referrer_name}\n"
        f"*New Lead:* {friend_name} ({friend_email})\n\n"
        "A new friend has signed up through a referral link."
    )


def build_referral_qualified_message(referrer_name: str, referrer_email: str, friend_name: str,
                                     reward: Optional[str] = None) -> str:
    return (
        ":tada: *Referral Reward Qualified!*\n\n"
        f"*Referrer:* {referrer_name} ({referrer_email})\n"
        f"*Referred Friend:* {friend_name}\n"
        f"*Reward:* {reward or DEFAULT_REWARD_DESCRIPTION}\n\n"
        "The 30-day window has passed and the referral is eligible for reward. "
        "Please process the reward."
    )


def build_referrals_due_message(referrals: List[dict]) -> str:
    """Daily summary of purchased referrals whose reward window has elapsed."""
    lines = [
        f":hourglass: *{len(referrals)} referral(s) due for review*",
        "",
    ]
    for referral in referrals:
        lines.append(
            f"- {referral.get('referrer_name')} -> {referral.get('referred_name')} "
            f"(eligible since {referral.get('reward_eligible_date')}, id {referral.get('id')})"
        )
    lines.append("")
    lines.append("Mark them as qualified in the admin panel once the purchase is confirmed.")
    return "\n".join(lines)
