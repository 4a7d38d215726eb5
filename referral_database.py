# referral_database.py

import uuid

from config import DEFAULT_CAMPAIGN_ID
from extensions import db
from utils.datetime_utils import utc_now, format_utc_iso
from services.enums import ReferralStatus, PhoneFormat


def _new_campaign_id() -> str:
    return str(uuid.uuid4())


# --- Campaign Model ---
class Campaign(db.Model):
    __tablename__ = 'campaign'

    id = db.Column(db.String(36), primary_key=True, default=_new_campaign_id)
    slug = db.Column(db.String(100), unique=True, nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    active = db.Column(db.Boolean, nullable=False, default=True)
    reward_amount = db.Column(db.String(100), nullable=False)
    reward_type = db.Column(db.String(100), nullable=False)

    # Page copy, form configuration and CRM mapping
    copy = db.Column(db.JSON, nullable=False, default=dict)
    standard_fields = db.Column(db.JSON, nullable=False, default=dict)
    custom_fields = db.Column(db.JSON, nullable=False, default=list)
    hubspot_portal_id = db.Column(db.String(50), nullable=True)
    hubspot_form_guid = db.Column(db.String(100), nullable=True)
    hubspot_friend_form_guid = db.Column(db.String(100), nullable=True)
    booking_url = db.Column(db.Text, nullable=True)
    phone_format = db.Column(db.String(20), nullable=False, default=PhoneFormat.INTERNATIONAL.value)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    @property
    def is_default(self) -> bool:
        return self.id == DEFAULT_CAMPAIGN_ID

    def to_public_dict(self) -> dict:
        """Fields safe to expose on public signup pages (no CRM ids)."""
        return {
            'id': self.id,
            'slug': self.slug,
            'name': self.name,
            'active': self.active,
            'reward_amount': self.reward_amount,
            'reward_type': self.reward_type,
            'copy': self.copy,
            'standard_fields': self.standard_fields,
            'custom_fields': self.custom_fields,
            'phone_format': self.phone_format,
        }

    def to_dict(self) -> dict:
        data = self.to_public_dict()
        data.update({
            'hubspot_portal_id': self.hubspot_portal_id,
            'hubspot_form_guid': self.hubspot_form_guid,
            'hubspot_friend_form_guid': self.hubspot_friend_form_guid,
            'booking_url': self.booking_url,
            'is_default': self.is_default,
            'created_at': format_utc_iso(self.created_at),
            'updated_at': format_utc_iso(self.updated_at),
        })
        return data

    def __repr__(self):
        return f'<Campaign {self.slug}>'


# --- Referrer Model ---
class Referrer(db.Model):
    __tablename__ = 'referrer'
    __table_args__ = (
        # Same email may register once per campaign
        db.UniqueConstraint('email', 'campaign_id', name='uq_referrer_email_campaign'),
    )

    id = db.Column(db.Integer, primary_key=True)
    referral_code = db.Column(db.String(100), unique=True, nullable=False, index=True)
    referral_link = db.Column(db.Text, nullable=False)
    email = db.Column(db.String(255), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    total_referrals = db.Column(db.Integer, nullable=False, default=0)
    campaign_id = db.Column(
        db.String(36),
        db.ForeignKey('campaign.id', ondelete='RESTRICT'),
        nullable=False,
        index=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)

    campaign = db.relationship('Campaign', backref=db.backref('referrers', lazy='dynamic'))

    def to_dict(self) -> dict:
        return {
            'referral_code': self.referral_code,
            'referral_link': self.referral_link,
            'email': self.email,
            'name': self.name,
            'total_referrals': self.total_referrals,
            'campaign_id': self.campaign_id,
            'created_at': format_utc_iso(self.created_at),
        }

    def __repr__(self):
        return f'<Referrer {self.email} ({self.referral_code})>'


# --- Referral Model ---
class Referral(db.Model):
    __tablename__ = 'referral'

    id = db.Column(db.String(100), primary_key=True)

    # Snapshot of the referrer at signup time; intentionally not a foreign key
    referrer_email = db.Column(db.String(255), nullable=False, index=True)
    referrer_name = db.Column(db.String(255), nullable=False)

    referred_email = db.Column(db.String(255), nullable=False)
    referred_name = db.Column(db.String(255), nullable=False)
    referred_phone = db.Column(db.String(50), nullable=True)
    referred_child_grade = db.Column(db.String(20), nullable=True)
    custom_fields = db.Column(db.JSON, nullable=False, default=dict)

    campaign_id = db.Column(
        db.String(36),
        db.ForeignKey('campaign.id', ondelete='RESTRICT'),
        nullable=False,
        index=True,
    )
    status = db.Column(db.String(20), nullable=False, default=ReferralStatus.PENDING.value, index=True)

    signup_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)
    purchase_date = db.Column(db.DateTime(timezone=True), nullable=True)
    reward_eligible_date = db.Column(db.DateTime(timezone=True), nullable=True)
    reward_issued_date = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=False, default='')
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)

    campaign = db.relationship('Campaign', backref=db.backref('referrals', lazy='dynamic'))

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'referrer_email': self.referrer_email,
            'referrer_name': self.referrer_name,
            'referred_email': self.referred_email,
            'referred_name': self.referred_name,
            'referred_phone': self.referred_phone or '',
            'referred_child_grade': self.referred_child_grade or '',
            'custom_fields': self.custom_fields or {},
            'campaign_id': self.campaign_id,
            'status': self.status,
            'signup_date': format_utc_iso(self.signup_date),
            'purchase_date': format_utc_iso(self.purchase_date),
            'reward_eligible_date': format_utc_iso(self.reward_eligible_date),
            'reward_issued_date': format_utc_iso(self.reward_issued_date),
            'notes': self.notes or '',
            'created_at': format_utc_iso(self.created_at),
        }

    def __repr__(self):
        return f'<Referral {self.id} {self.status}>'
