"""
ReferrerService - referrer registry
Idempotent registration, code lookup and cascading delete of referrers
"""

from typing import List, Dict, Optional, Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from repositories.campaign_repository import CampaignRepository
from repositories.referrer_repository import ReferrerRepository
from repositories.referral_repository import ReferralRepository
from services.common.result import Result
from services.enums import ErrorCode, NotificationEvent
from utils.referral_codes import (
    generate_referral_code,
    generate_referral_link,
    normalize_email,
    is_valid_email,
)
from logging_config import get_logger

logger = get_logger(__name__)

# Fresh codes tried when an insert collides on referral_code rather than email
MAX_CODE_ATTEMPTS = 3


class ReferrerService:
    """Registers referrers and issues their referral links"""

    def __init__(self,
                 referrer_repository: ReferrerRepository,
                 referral_repository: ReferralRepository,
                 campaign_repository: CampaignRepository,
                 notification_dispatcher=None,
                 base_url: str = '',
                 default_campaign_id: Optional[str] = None):
        self.referrer_repository = referrer_repository
        self.referral_repository = referral_repository
        self.campaign_repository = campaign_repository
        self.notification_dispatcher = notification_dispatcher
        self.base_url = base_url
        self.default_campaign_id = default_campaign_id

    def register(self, email: str, name: str,
                 campaign_id: Optional[str] = None,
                 campaign_slug: Optional[str] = None) -> Result[Dict[str, Any]]:
        """
        Register a referrer for a campaign, or return the existing registration.

        Calling this twice with the same email (any casing) and campaign
        yields the same referral code; the second call has is_existing=True.

        Returns:
            Result with data {'referrer': Referrer, 'is_existing': bool}
        """
        if not isinstance(email, str) or not isinstance(name, str):
            return Result.failure("Email and name are required", code=ErrorCode.VALIDATION_ERROR)
        name = name.strip()
        if not email.strip() or not name:
            return Result.failure("Email and name are required", code=ErrorCode.VALIDATION_ERROR)
        if not is_valid_email(email):
            return Result.failure("Please enter a valid email address", code=ErrorCode.VALIDATION_ERROR)

        campaign = self._resolve_campaign(campaign_id, campaign_slug)
        if not campaign:
            return Result.failure("Campaign not found", code=ErrorCode.NOT_FOUND)

        email = normalize_email(email)

        existing = self.referrer_repository.find_by_email_and_campaign(email, campaign.id)
        if existing:
            logger.info("Referrer already registered", referrer_id=existing.id, campaign_id=campaign.id)
            return Result.success({'referrer': existing, 'is_existing': True})

        for attempt in range(1, MAX_CODE_ATTEMPTS + 1):
            code = generate_referral_code()
            try:
                referrer = self.referrer_repository.create(
                    referral_code=code,
                    referral_link=generate_referral_link(code, campaign.slug, self.base_url),
                    email=email,
                    name=name,
                    total_referrals=0,
                    campaign_id=campaign.id,
                )
                self.referrer_repository.commit()
            except IntegrityError:
                # Either a concurrent registration for the same email won, or
                # the code collided. The repository has already rolled back.
                existing = self.referrer_repository.find_by_email_and_campaign(email, campaign.id)
                if existing:
                    logger.info("Registration race resolved to existing referrer", referrer_id=existing.id)
                    return Result.success({'referrer': existing, 'is_existing': True})
                logger.warning("Referral code collision, retrying", attempt=attempt)
                continue
            except SQLAlchemyError as e:
                logger.error("Failed to register referrer", campaign_id=campaign.id, error=str(e))
                return Result.failure("Something went wrong. Please try again.", code=ErrorCode.STORAGE_ERROR)

            logger.info("Registered referrer", referrer_id=referrer.id, campaign_id=campaign.id)
            self._notify_registered(referrer, campaign)
            return Result.success({'referrer': referrer, 'is_existing': False})

        return Result.failure("Something went wrong. Please try again.", code=ErrorCode.STORAGE_ERROR)

    def lookup_by_code(self, code: str) -> Result[Any]:
        if not isinstance(code, str) or not code.strip():
            return Result.failure("Invalid referral code", code=ErrorCode.NOT_FOUND)
        referrer = self.referrer_repository.find_by_code(code.strip())
        if not referrer:
            return Result.failure("Invalid referral code", code=ErrorCode.NOT_FOUND)
        return Result.success(referrer)

    def get_by_email(self, email: str, campaign_id: Optional[str] = None):
        """Referrer for an email in a campaign (the default campaign when none given)."""
        email = normalize_email(email)
        if not email:
            return None
        return self.referrer_repository.find_by_email_and_campaign(
            email, campaign_id or self.default_campaign_id
        )

    def list_referrers(self, campaign_id: Optional[str] = None) -> List[Any]:
        return self.referrer_repository.list_referrers(campaign_id=campaign_id)

    def delete(self, email: str) -> Result[Dict[str, int]]:
        """
        Delete every registration of an email and the referrals made through it.

        Both deletes commit together or not at all.
        """
        email = normalize_email(email)
        if not email:
            return Result.failure("Email is required", code=ErrorCode.VALIDATION_ERROR)

        referrers = self.referrer_repository.find_all_by_email(email)
        if not referrers:
            return Result.failure("Referrer not found", code=ErrorCode.NOT_FOUND)

        try:
            referrals_deleted = self.referral_repository.delete_by_referrer_email(email)
            for referrer in referrers:
                self.referrer_repository.delete(referrer)
            self.referrer_repository.commit()
        except SQLAlchemyError as e:
            logger.error("Failed to delete referrer", error=str(e))
            self.referrer_repository.rollback()
            return Result.failure("Failed to delete referrer", code=ErrorCode.STORAGE_ERROR)

        logger.info(
            "Deleted referrer",
            referrers_deleted=len(referrers),
            referrals_deleted=referrals_deleted,
        )
        return Result.success({
            'referrers_deleted': len(referrers),
            'referrals_deleted': referrals_deleted,
        })

    def _resolve_campaign(self, campaign_id: Optional[str], campaign_slug: Optional[str]):
        """Active campaign to register into, or None."""
        if campaign_slug and not campaign_id:
            return self.campaign_repository.find_by_slug(campaign_slug, active_only=True)
        campaign_id = campaign_id or self.default_campaign_id
        if not campaign_id:
            return None
        campaign = self.campaign_repository.get_by_id(campaign_id)
        return campaign if campaign and campaign.active else None

    def _notify_registered(self, referrer, campaign) -> None:
        if not self.notification_dispatcher:
            return
        self.notification_dispatcher.dispatch(
            NotificationEvent.REFERRER_REGISTERED,
            {
                'email': referrer.email,
                'name': referrer.name,
                'referral_link': referrer.referral_link,
                'campaign_slug': campaign.slug,
                'hubspot_portal_id': campaign.hubspot_portal_id,
                'hubspot_form_guid': campaign.hubspot_form_guid,
            },
        )
