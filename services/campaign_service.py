"""
CampaignService - campaign store
Business logic for referral campaigns, using CampaignRepository for data access
"""

from typing import List, Dict, Optional, Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from repositories.campaign_repository import CampaignRepository
from services.common.result import Result
from services.enums import ErrorCode, CustomFieldType, PhoneFormat
from utils.referral_codes import sanitize_slug
from logging_config import get_logger

logger = get_logger(__name__)


DEFAULT_CAMPAIGN_COPY = {
    'referrer_page_title': 'Refer a Friend',
    'referrer_page_subtitle': 'Share with friends and earn rewards!',
    'referrer_form_heading': 'Get Your Referral Link',
    'referrer_success_title': "You're In!",
    'referrer_success_message': 'Share your unique link with friends to start earning rewards.',
    'friend_page_title': 'Welcome!',
    'friend_page_subtitle': "Your friend thinks you'll love us",
    'friend_form_heading': 'Sign Up for Your Free Trial',
    'friend_success_title': 'Thanks for signing up!',
    'friend_success_message': "We'll be in touch soon to get you started.",
    'reward_description': 'Get rewarded for each friend who signs up!',
    'terms_content': 'Standard terms and conditions apply.',
}

DEFAULT_STANDARD_FIELDS = {
    'phone': True,
    'child_grade': True,
}

DEFAULT_CAMPAIGN_VALUES = {
    'slug': 'default',
    'name': 'Default Campaign',
    'reward_amount': '$150',
    'reward_type': 'Amazon voucher',
}

REQUIRED_CAMPAIGN_FIELDS = ('slug', 'name', 'reward_amount', 'reward_type')

# Top-level keys an admin may set; anything else (including id) is ignored
UPDATABLE_FIELDS = (
    'slug', 'name', 'active', 'reward_amount', 'reward_type',
    'copy', 'standard_fields', 'custom_fields',
    'hubspot_portal_id', 'hubspot_form_guid', 'hubspot_friend_form_guid',
    'booking_url', 'phone_format',
)

NULLABLE_STRING_FIELDS = (
    'hubspot_portal_id', 'hubspot_form_guid', 'hubspot_friend_form_guid', 'booking_url',
)


class CampaignService:
    """Service for managing referral campaigns with repository pattern"""

    def __init__(self,
                 campaign_repository: CampaignRepository,
                 default_campaign_id: str):
        """
        Args:
            campaign_repository: CampaignRepository for campaign data access
            default_campaign_id: Id of the campaign that can never be deleted
        """
        self.campaign_repository = campaign_repository
        self.default_campaign_id = default_campaign_id

    # Reads

    def get_by_id(self, campaign_id: str) -> Result[Any]:
        """Admin lookup, returns active and inactive campaigns."""
        campaign = self.campaign_repository.get_by_id(campaign_id) if campaign_id else None
        if not campaign:
            return Result.failure("Campaign not found", code=ErrorCode.NOT_FOUND)
        return Result.success(campaign)

    def get_by_slug(self, slug: str) -> Result[Any]:
        """Public lookup, inactive campaigns are treated as missing."""
        campaign = self.campaign_repository.find_by_slug(slug, active_only=True) if slug else None
        if not campaign:
            return Result.failure("Campaign not found or inactive", code=ErrorCode.NOT_FOUND)
        return Result.success(campaign)

    def get_default_campaign(self):
        return self.campaign_repository.get_by_id(self.default_campaign_id)

    def list_campaigns(self, active_only: bool = False) -> List[Any]:
        return self.campaign_repository.list_campaigns(active_only=active_only)

    def stats(self, campaign_id: str) -> Dict[str, int]:
        """Referrers, referrals, qualified and rewarded counts for one campaign."""
        return self.campaign_repository.get_campaign_stats(campaign_id)

    # Writes

    def create(self, data: Dict[str, Any]) -> Result[Any]:
        """
        Create a campaign.

        Partial copy / standard_fields are merged over the defaults. The id is
        always generated server side.

        Returns:
            Result[Campaign]: VALIDATION_ERROR for missing or malformed fields,
            CONFLICT when the slug is taken
        """
        data = data or {}
        missing = [field for field in REQUIRED_CAMPAIGN_FIELDS if not data.get(field)]
        if missing:
            return Result.failure(
                f"Missing required fields: {', '.join(missing)}",
                code=ErrorCode.VALIDATION_ERROR,
            )

        slug = sanitize_slug(data['slug'])
        if not slug:
            return Result.failure("Slug cannot be empty", code=ErrorCode.VALIDATION_ERROR)
        if self.campaign_repository.slug_taken(slug):
            return Result.failure(f"Slug '{slug}' already exists", code=ErrorCode.CONFLICT)

        copy = data.get('copy') or {}
        standard_fields = data.get('standard_fields') or {}
        if not isinstance(copy, dict) or not isinstance(standard_fields, dict):
            return Result.failure("copy and standard_fields must be objects", code=ErrorCode.VALIDATION_ERROR)

        custom_fields_result = validate_custom_field_definitions(data.get('custom_fields') or [])
        if custom_fields_result.is_failure:
            return custom_fields_result

        phone_format_result = normalize_phone_format(data.get('phone_format'))
        if phone_format_result.is_failure:
            return phone_format_result

        values = {
            'slug': slug,
            'name': data['name'],
            'active': bool(data.get('active', True)),
            'reward_amount': data['reward_amount'],
            'reward_type': data['reward_type'],
            'copy': {**DEFAULT_CAMPAIGN_COPY, **copy},
            'standard_fields': {**DEFAULT_STANDARD_FIELDS, **standard_fields},
            'custom_fields': custom_fields_result.data,
            'phone_format': phone_format_result.data,
        }
        for field in NULLABLE_STRING_FIELDS:
            values[field] = data.get(field) or None

        try:
            campaign = self.campaign_repository.create(**values)
            self.campaign_repository.commit()
        except IntegrityError:
            # Lost a race for the slug; the unique constraint decides
            return Result.failure(f"Slug '{slug}' already exists", code=ErrorCode.CONFLICT)
        except SQLAlchemyError as e:
            logger.error("Failed to create campaign", slug=slug, error=str(e))
            return Result.failure("Failed to create campaign", code=ErrorCode.STORAGE_ERROR)

        logger.info("Created campaign", campaign_id=campaign.id, slug=slug)
        return Result.success(campaign)

    def update(self, campaign_id: str, data: Dict[str, Any]) -> Result[Any]:
        """
        Patch a campaign.

        Only supplied top-level keys change; copy and standard_fields are
        replaced wholesale when present. Unknown keys and id are ignored.
        """
        campaign = self.campaign_repository.get_by_id(campaign_id) if campaign_id else None
        if not campaign:
            return Result.failure("Campaign not found", code=ErrorCode.NOT_FOUND)

        data = data or {}
        updates = {key: data[key] for key in UPDATABLE_FIELDS if key in data}

        if 'slug' in updates:
            slug = sanitize_slug(updates['slug'])
            if not slug:
                return Result.failure("Slug cannot be empty", code=ErrorCode.VALIDATION_ERROR)
            if self.campaign_repository.slug_taken(slug, exclude_id=campaign.id):
                return Result.failure(f"Slug '{slug}' already exists", code=ErrorCode.CONFLICT)
            updates['slug'] = slug

        for field in ('name', 'reward_amount', 'reward_type'):
            if field in updates and not updates[field]:
                return Result.failure(f"{field} cannot be empty", code=ErrorCode.VALIDATION_ERROR)

        for field in ('copy', 'standard_fields'):
            if field in updates and not isinstance(updates[field], dict):
                return Result.failure(f"{field} must be an object", code=ErrorCode.VALIDATION_ERROR)

        if 'custom_fields' in updates:
            custom_fields_result = validate_custom_field_definitions(updates['custom_fields'] or [])
            if custom_fields_result.is_failure:
                return custom_fields_result
            updates['custom_fields'] = custom_fields_result.data

        if 'phone_format' in updates:
            phone_format_result = normalize_phone_format(updates['phone_format'])
            if phone_format_result.is_failure:
                return phone_format_result
            updates['phone_format'] = phone_format_result.data

        if 'active' in updates:
            updates['active'] = bool(updates['active'])

        for field in NULLABLE_STRING_FIELDS:
            if field in updates:
                updates[field] = updates[field] or None

        try:
            self.campaign_repository.update(campaign, **updates)
            self.campaign_repository.commit()
        except IntegrityError:
            return Result.failure("Slug already exists", code=ErrorCode.CONFLICT)
        except SQLAlchemyError as e:
            logger.error("Failed to update campaign", campaign_id=campaign_id, error=str(e))
            return Result.failure("Failed to update campaign", code=ErrorCode.STORAGE_ERROR)

        logger.info("Updated campaign", campaign_id=campaign_id, fields=sorted(updates))
        return Result.success(campaign)

    def delete(self, campaign_id: str) -> Result[bool]:
        """
        Delete a campaign that nothing references.

        The default campaign is never deletable.
        """
        if campaign_id == self.default_campaign_id:
            return Result.failure("Cannot delete the default campaign", code=ErrorCode.CONFLICT)

        campaign = self.campaign_repository.get_by_id(campaign_id) if campaign_id else None
        if not campaign:
            return Result.failure("Campaign not found", code=ErrorCode.NOT_FOUND)

        references = self.campaign_repository.count_references(campaign_id)
        if references['referrers'] or references['referrals']:
            return Result.failure(
                "Cannot delete campaign with existing referrers or referrals",
                code=ErrorCode.CONFLICT,
                metadata=references,
            )

        try:
            self.campaign_repository.delete(campaign)
            self.campaign_repository.commit()
        except IntegrityError:
            # A referrer arrived between the check and the delete
            return Result.failure(
                "Cannot delete campaign with existing referrers or referrals",
                code=ErrorCode.CONFLICT,
            )
        except SQLAlchemyError as e:
            logger.error("Failed to delete campaign", campaign_id=campaign_id, error=str(e))
            return Result.failure("Failed to delete campaign", code=ErrorCode.STORAGE_ERROR)

        logger.info("Deleted campaign", campaign_id=campaign_id)
        return Result.success(True)

    def ensure_default_campaign(self):
        """Create the default campaign if it does not exist yet. Idempotent."""
        campaign = self.get_default_campaign()
        if campaign:
            return campaign

        slug = DEFAULT_CAMPAIGN_VALUES['slug']
        if self.campaign_repository.slug_taken(slug):
            slug = f"{slug}-{self.default_campaign_id[-4:]}"

        try:
            campaign = self.campaign_repository.create(
                id=self.default_campaign_id,
                slug=slug,
                name=DEFAULT_CAMPAIGN_VALUES['name'],
                active=True,
                reward_amount=DEFAULT_CAMPAIGN_VALUES['reward_amount'],
                reward_type=DEFAULT_CAMPAIGN_VALUES['reward_type'],
                copy=dict(DEFAULT_CAMPAIGN_COPY),
                standard_fields=dict(DEFAULT_STANDARD_FIELDS),
                custom_fields=[],
                phone_format=PhoneFormat.INTERNATIONAL.value,
            )
            self.campaign_repository.commit()
        except IntegrityError:
            # Seeded concurrently by another process
            return self.get_default_campaign()

        logger.info("Seeded default campaign", campaign_id=campaign.id, slug=slug)
        return campaign


def normalize_phone_format(value: Optional[str]) -> Result[str]:
    if value is None or value == '':
        return Result.success(PhoneFormat.INTERNATIONAL.value)
    try:
        return Result.success(PhoneFormat(str(value).lower()).value)
    except ValueError:
        allowed = ', '.join(p.value for p in PhoneFormat)
        return Result.failure(f"phone_format must be one of {allowed}", code=ErrorCode.VALIDATION_ERROR)


def validate_custom_field_definitions(fields: Any) -> Result[List[Dict[str, Any]]]:
    """
    Validate a campaign's custom field schema.

    Each field needs a unique name, a label and a known type; select fields
    need a non-empty options list.
    """
    if not isinstance(fields, list):
        return Result.failure("custom_fields must be a list", code=ErrorCode.VALIDATION_ERROR)

    cleaned = []
    seen = set()
    allowed_types = {t.value for t in CustomFieldType}

    for index, field in enumerate(fields):
        if not isinstance(field, dict):
            return Result.failure(f"custom_fields[{index}] must be an object", code=ErrorCode.VALIDATION_ERROR)

        name = (field.get('name') or '').strip()
        label = (field.get('label') or '').strip()
        field_type = field.get('type') or CustomFieldType.TEXT.value

        if not name or not label:
            return Result.failure(
                f"custom_fields[{index}] requires a name and a label",
                code=ErrorCode.VALIDATION_ERROR,
            )
        if name in seen:
            return Result.failure(f"Duplicate custom field name '{name}'", code=ErrorCode.VALIDATION_ERROR)
        if field_type not in allowed_types:
            return Result.failure(
                f"Custom field '{name}' has unknown type '{field_type}'",
                code=ErrorCode.VALIDATION_ERROR,
            )

        definition = {
            'name': name,
            'label': label,
            'type': field_type,
            'required': bool(field.get('required', False)),
        }
        if field_type == CustomFieldType.SELECT.value:
            options = field.get('options') or []
            if not isinstance(options, list) or not options:
                return Result.failure(
                    f"Select field '{name}' needs at least one option",
                    code=ErrorCode.VALIDATION_ERROR,
                )
            definition['options'] = [str(option) for option in options]
        if field.get('placeholder'):
            definition['placeholder'] = str(field['placeholder'])

        seen.add(name)
        cleaned.append(definition)

    return Result.success(cleaned)
