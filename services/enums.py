"""
Service layer enums
These enums are shared by models, services and routes so that services can
work without importing database models.
"""

from enum import Enum


class ReferralStatus(str, Enum):
    """Lifecycle states of a referral"""
    PENDING = 'pending'            # Friend signed up, waiting for purchase
    PURCHASED = 'purchased'        # Purchase made, waiting for the reward window
    QUALIFIED = 'qualified'        # Window passed, eligible for reward
    REWARDED = 'rewarded'          # Reward has been issued
    DISQUALIFIED = 'disqualified'  # Refunded or cancelled

    @property
    def is_terminal(self) -> bool:
        return self in (ReferralStatus.REWARDED, ReferralStatus.DISQUALIFIED)


class ReferralAction(str, Enum):
    """Admin actions accepted by the lifecycle engine"""
    MARK_PURCHASED = 'mark_purchased'
    MARK_QUALIFIED = 'mark_qualified'
    MARK_REWARDED = 'mark_rewarded'
    DISQUALIFY = 'disqualify'
    ADD_NOTES = 'add_notes'


class TransitionPolicy(str, Enum):
    """How strictly status transitions are validated"""
    STRICT = 'strict'          # Only legal edges of the lifecycle graph
    PERMISSIVE = 'permissive'  # Any mark_X action from any state


class CustomFieldType(str, Enum):
    """Input types allowed for campaign custom fields"""
    TEXT = 'text'
    EMAIL = 'email'
    TEL = 'tel'
    SELECT = 'select'
    TEXTAREA = 'textarea'


class PhoneFormat(str, Enum):
    """Phone input format hint exposed to the signup form"""
    INTERNATIONAL = 'international'
    US = 'us'
    UK = 'uk'


class NotificationEvent(str, Enum):
    """Events delivered to HubSpot / Slack"""
    REFERRER_REGISTERED = 'referrer_registered'
    REFERRAL_CREATED = 'referral_created'
    REFERRAL_QUALIFIED = 'referral_qualified'


class ErrorCode(str, Enum):
    """Error codes carried by failed Results"""
    VALIDATION_ERROR = 'VALIDATION_ERROR'
    NOT_FOUND = 'NOT_FOUND'
    UNAUTHORIZED = 'UNAUTHORIZED'
    CONFLICT = 'CONFLICT'
    INVALID_ACTION = 'INVALID_ACTION'
    INVALID_TRANSITION = 'INVALID_TRANSITION'
    STORAGE_ERROR = 'STORAGE_ERROR'
    NOT_CONFIGURED = 'NOT_CONFIGURED'
    EXTERNAL_SERVICE_ERROR = 'EXTERNAL_SERVICE_ERROR'


# HTTP status for each error code at the API boundary
ERROR_HTTP_STATUS = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.CONFLICT: 400,
    ErrorCode.INVALID_ACTION: 400,
    ErrorCode.INVALID_TRANSITION: 400,
    ErrorCode.STORAGE_ERROR: 500,
    ErrorCode.NOT_CONFIGURED: 500,
    ErrorCode.EXTERNAL_SERVICE_ERROR: 502,
}
