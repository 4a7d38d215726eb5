"""
ReferralService - referral lifecycle engine

Creates referrals from friend signups and moves them through
pending -> purchased -> qualified -> rewarded (or disqualified).
"""

from datetime import datetime
from typing import List, Dict, Optional, Any, Callable, Union
from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode

from sqlalchemy.exc import SQLAlchemyError

from repositories.campaign_repository import CampaignRepository
from repositories.referrer_repository import ReferrerRepository
from repositories.referral_repository import ReferralRepository
from services.common.result import Result
from services.enums import (
    ErrorCode,
    ReferralStatus,
    ReferralAction,
    TransitionPolicy,
    NotificationEvent,
    CustomFieldType,
)
from services.notification_dispatcher import build_referral_payload
from utils.datetime_utils import utc_now, add_calendar_days
from utils.referral_codes import generate_referral_id, normalize_email, is_valid_email
from logging_config import get_logger

logger = get_logger(__name__)


NON_TERMINAL = frozenset({ReferralStatus.PENDING, ReferralStatus.PURCHASED, ReferralStatus.QUALIFIED})

# States each action may be applied from under the strict policy
STRICT_TRANSITIONS = {
    ReferralAction.MARK_PURCHASED: frozenset({ReferralStatus.PENDING, ReferralStatus.PURCHASED}),
    ReferralAction.MARK_QUALIFIED: frozenset({ReferralStatus.PURCHASED}),
    ReferralAction.MARK_REWARDED: frozenset({ReferralStatus.QUALIFIED}),
    ReferralAction.DISQUALIFY: NON_TERMINAL,
    ReferralAction.ADD_NOTES: frozenset(ReferralStatus),
}


class ReferralService:
    """Service for friend referrals and their status lifecycle"""

    def __init__(self,
                 referral_repository: ReferralRepository,
                 referrer_repository: ReferrerRepository,
                 campaign_repository: CampaignRepository,
                 notification_dispatcher=None,
                 booking_url: str = '',
                 reward_window_days: int = 30,
                 transition_policy: TransitionPolicy = TransitionPolicy.STRICT,
                 clock: Optional[Callable[[], datetime]] = None):
        """
        Args:
            referral_repository: ReferralRepository for referral data access
            referrer_repository: ReferrerRepository, used for code lookup and the counter
            campaign_repository: CampaignRepository for custom field schemas
            notification_dispatcher: NotificationDispatcher (optional)
            booking_url: Default redirect after a friend signs up
            reward_window_days: Days between purchase and reward eligibility
            transition_policy: STRICT or PERMISSIVE status transitions
            clock: Returns the current UTC time (injectable for tests)
        """
        self.referral_repository = referral_repository
        self.referrer_repository = referrer_repository
        self.campaign_repository = campaign_repository
        self.notification_dispatcher = notification_dispatcher
        self.booking_url = booking_url
        self.reward_window_days = reward_window_days
        self.transition_policy = TransitionPolicy(transition_policy)
        self.clock = clock or utc_now

    # Creation

    def create_referral(self,
                        referral_code: str,
                        friend_name: str,
                        friend_email: str,
                        friend_phone: Optional[str] = None,
                        child_grade: Optional[str] = None,
                        campaign_id: Optional[str] = None,
                        custom_fields: Optional[Dict[str, Any]] = None) -> Result[Any]:
        """
        Record a friend signup made through a referral link.

        The referral insert and the referrer's counter increment commit
        together. Notifications go out after the commit and cannot fail
        the signup.

        Returns:
            Result[Referral] with metadata['booking_url'] on success
        """
        if not all(isinstance(value, str) for value in (referral_code, friend_name, friend_email)):
            return Result.failure("Name and email are required", code=ErrorCode.VALIDATION_ERROR)
        if not all(isinstance(value, str) for value in (friend_phone or '', child_grade or '')):
            return Result.failure("Phone and grade must be text", code=ErrorCode.VALIDATION_ERROR)

        friend_name = friend_name.strip()
        if not referral_code.strip() or not friend_name or not friend_email.strip():
            return Result.failure("Name and email are required", code=ErrorCode.VALIDATION_ERROR)
        if not is_valid_email(friend_email):
            return Result.failure("Please enter a valid email address", code=ErrorCode.VALIDATION_ERROR)

        referrer = self.referrer_repository.find_by_code(referral_code.strip())
        if not referrer:
            return Result.failure(
                "Invalid referral code. Please check your link and try again.",
                code=ErrorCode.NOT_FOUND,
            )

        # A referral always belongs to its referrer's campaign
        if campaign_id and campaign_id != referrer.campaign_id:
            return Result.failure(
                "Referral code does not belong to this campaign",
                code=ErrorCode.VALIDATION_ERROR,
            )

        campaign = self.campaign_repository.get_by_id(referrer.campaign_id)
        if not campaign or not campaign.active:
            return Result.failure("Campaign not found or inactive", code=ErrorCode.NOT_FOUND)

        custom_result = validate_custom_field_values(campaign.custom_fields or [], custom_fields)
        if custom_result.is_failure:
            return custom_result

        now = self.clock()
        try:
            referral = self.referral_repository.create(
                id=generate_referral_id(),
                referrer_email=referrer.email,
                referrer_name=referrer.name,
                referred_email=normalize_email(friend_email),
                referred_name=friend_name,
                referred_phone=(friend_phone or '').strip() or None,
                referred_child_grade=(child_grade or '').strip() or None,
                custom_fields=custom_result.data,
                campaign_id=campaign.id,
                status=ReferralStatus.PENDING.value,
                signup_date=now,
                notes='',
                created_at=now,
            )
            self.referrer_repository.increment_referral_count(referrer.id)
            self.referral_repository.commit()
        except SQLAlchemyError as e:
            self.referral_repository.rollback()
            logger.error("Failed to create referral", referrer_id=referrer.id, error=str(e))
            return Result.failure("Something went wrong. Please try again.", code=ErrorCode.STORAGE_ERROR)

        logger.info("Created referral", referral_id=referral.id, campaign_id=campaign.id)

        self._dispatch(NotificationEvent.REFERRAL_CREATED, build_referral_payload(referral, campaign))

        booking_url = build_booking_url(
            campaign.booking_url or self.booking_url,
            campaign_slug=campaign.slug,
            referral_code=referrer.referral_code,
        )
        return Result.success(referral, metadata={'booking_url': booking_url})

    # Lifecycle

    def transition(self, referral_id: str, action: Union[ReferralAction, str],
                   notes: Optional[str] = None) -> Result[Any]:
        """
        Apply an admin action to a referral.

        Returns:
            Result[Referral]: NOT_FOUND for an unknown id, INVALID_ACTION for an
            unknown action, INVALID_TRANSITION when the policy forbids the edge
        """
        referral = self.referral_repository.get_by_id(referral_id) if referral_id else None
        if not referral:
            return Result.failure("Referral not found", code=ErrorCode.NOT_FOUND)

        try:
            action = ReferralAction(action)
        except ValueError:
            return Result.failure("Invalid action", code=ErrorCode.INVALID_ACTION)

        if not self.is_transition_allowed(referral.status, action):
            return Result.failure(
                f"Cannot {action.value} a referral that is {referral.status}",
                code=ErrorCode.INVALID_TRANSITION,
                metadata={'status': referral.status, 'action': action.value},
            )

        updates = self._updates_for(referral, action, notes)

        try:
            self.referral_repository.update(referral, **updates)
            self.referral_repository.commit()
        except SQLAlchemyError as e:
            logger.error("Failed to update referral", referral_id=referral_id, error=str(e))
            return Result.failure("Failed to update referral", code=ErrorCode.STORAGE_ERROR)

        logger.info("Referral transitioned", referral_id=referral_id, action=action.value, status=referral.status)

        if action == ReferralAction.MARK_QUALIFIED:
            campaign = self.campaign_repository.get_by_id(referral.campaign_id)
            self._dispatch(NotificationEvent.REFERRAL_QUALIFIED, build_referral_payload(referral, campaign))

        return Result.success(referral)

    def is_transition_allowed(self, status: str, action: ReferralAction) -> bool:
        if self.transition_policy == TransitionPolicy.PERMISSIVE:
            return True
        try:
            current = ReferralStatus(status)
        except ValueError:
            return False
        return current in STRICT_TRANSITIONS[action]

    def _updates_for(self, referral, action: ReferralAction, notes: Optional[str]) -> Dict[str, Any]:
        now = self.clock()

        if action == ReferralAction.MARK_PURCHASED:
            return {
                'status': ReferralStatus.PURCHASED.value,
                'purchase_date': now,
                'reward_eligible_date': add_calendar_days(now, self.reward_window_days),
            }
        if action == ReferralAction.MARK_QUALIFIED:
            return {'status': ReferralStatus.QUALIFIED.value}
        if action == ReferralAction.MARK_REWARDED:
            return {
                'status': ReferralStatus.REWARDED.value,
                'reward_issued_date': now,
            }
        if action == ReferralAction.DISQUALIFY:
            return {
                'status': ReferralStatus.DISQUALIFIED.value,
                'notes': notes or referral.notes or '',
            }
        # add_notes
        return {'notes': notes or ''}

    # Queries

    def get_referral(self, referral_id: str) -> Result[Any]:
        referral = self.referral_repository.get_by_id(referral_id) if referral_id else None
        if not referral:
            return Result.failure("Referral not found", code=ErrorCode.NOT_FOUND)
        return Result.success(referral)

    def list_referrals(self, campaign_id: Optional[str] = None,
                       status: Optional[str] = None) -> List[Any]:
        """Referrals newest first."""
        return self.referral_repository.list_referrals(campaign_id=campaign_id, status=status)

    def get_stats(self, campaign_id: Optional[str] = None) -> Dict[str, int]:
        """Counts per status plus total."""
        return self.referral_repository.count_by_status(campaign_id=campaign_id)

    def get_due_for_qualification(self, as_of: Optional[datetime] = None) -> List[Any]:
        """Purchased referrals whose reward window has elapsed by as_of (default now)."""
        return self.referral_repository.find_due_for_qualification(as_of or self.clock())

    def _dispatch(self, event: NotificationEvent, payload: Dict[str, Any]) -> None:
        if not self.notification_dispatcher:
            return
        try:
            self.notification_dispatcher.dispatch(event, payload)
        except Exception as e:
            # The dispatcher already swallows its own errors; this guards stand-ins
            logger.error("Notification dispatch raised", notification_event=event.value, error=str(e))


def validate_custom_field_values(definitions: List[Dict[str, Any]],
                                 submitted: Optional[Dict[str, Any]]) -> Result[Dict[str, str]]:
    """
    Check submitted custom field values against a campaign's schema.

    Required fields must be non-empty, select values must be among the
    options and email fields must look like an email. Keys the schema does
    not define are dropped.
    """
    if submitted is None:
        submitted = {}
    if not isinstance(submitted, dict):
        return Result.failure("customFields must be an object", code=ErrorCode.VALIDATION_ERROR)

    cleaned = {}
    for definition in definitions:
        name = definition.get('name')
        label = definition.get('label') or name
        raw = submitted.get(name)
        value = '' if raw is None else str(raw).strip()

        if not value:
            if definition.get('required'):
                return Result.failure(f"{label} is required", code=ErrorCode.VALIDATION_ERROR)
            continue

        field_type = definition.get('type')
        if field_type == CustomFieldType.SELECT.value and value not in (definition.get('options') or []):
            return Result.failure(f"Invalid option for {label}", code=ErrorCode.VALIDATION_ERROR)
        if field_type == CustomFieldType.EMAIL.value and not is_valid_email(value):
            return Result.failure(f"{label} must be a valid email address", code=ErrorCode.VALIDATION_ERROR)

        cleaned[name] = value

    return Result.success(cleaned)


def build_booking_url(base_url: str, campaign_slug: str, referral_code: str) -> str:
    """Append referral UTM parameters to a booking URL, keeping its own query."""
    parts = urlsplit(base_url)
    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    query.update({
        'utm_source': 'referral',
        'utm_medium': 'friend_signup',
        'utm_campaign': campaign_slug,
        'ref': referral_code,
    })
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))
