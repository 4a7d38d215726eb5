"""Create campaign, referrer and referral tables

Revision ID: 0001_initial_referral_tables
Revises: 
Create Date: 2025-01-01

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial_referral_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Campaign first (referrer and referral both point at it)
    op.create_table('campaign',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('slug', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.Column('reward_amount', sa.String(length=100), nullable=False),
        sa.Column('reward_type', sa.String(length=100), nullable=False),
        sa.Column('copy', sa.JSON(), nullable=False),
        sa.Column('standard_fields', sa.JSON(), nullable=False),
        sa.Column('custom_fields', sa.JSON(), nullable=False),
        sa.Column('hubspot_portal_id', sa.String(length=50), nullable=True),
        sa.Column('hubspot_form_guid', sa.String(length=100), nullable=True),
        sa.Column('hubspot_friend_form_guid', sa.String(length=100), nullable=True),
        sa.Column('booking_url', sa.Text(), nullable=True),
        sa.Column('phone_format', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_campaign_slug'), 'campaign', ['slug'], unique=True)

    op.create_table('referrer',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('referral_code', sa.String(length=100), nullable=False),
        sa.Column('referral_link', sa.Text(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('total_referrals', sa.Integer(), nullable=False),
        sa.Column('campaign_id', sa.String(length=36), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['campaign_id'], ['campaign.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', 'campaign_id', name='uq_referrer_email_campaign')
    )
    op.create_index(op.f('ix_referrer_referral_code'), 'referrer', ['referral_code'], unique=True)
    op.create_index(op.f('ix_referrer_email'), 'referrer', ['email'], unique=False)
    op.create_index(op.f('ix_referrer_campaign_id'), 'referrer', ['campaign_id'], unique=False)

    op.create_table('referral',
        sa.Column('id', sa.String(length=100), nullable=False),
        sa.Column('referrer_email', sa.String(length=255), nullable=False),
        sa.Column('referrer_name', sa.String(length=255), nullable=False),
        sa.Column('referred_email', sa.String(length=255), nullable=False),
        sa.Column('referred_name', sa.String(length=255), nullable=False),
        sa.Column('referred_phone', sa.String(length=50), nullable=True),
        sa.Column('referred_child_grade', sa.String(length=20), nullable=True),
        sa.Column('custom_fields', sa.JSON(), nullable=False),
        sa.Column('campaign_id', sa.String(length=36), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('signup_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('purchase_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reward_eligible_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reward_issued_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['campaign_id'], ['campaign.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_referral_referrer_email'), 'referral', ['referrer_email'], unique=False)
    op.create_index(op.f('ix_referral_campaign_id'), 'referral', ['campaign_id'], unique=False)
    op.create_index(op.f('ix_referral_status'), 'referral', ['status'], unique=False)


def downgrade():
    op.drop_index(op.f('ix_referral_status'), table_name='referral')
    op.drop_index(op.f('ix_referral_campaign_id'), table_name='referral')
    op.drop_index(op.f('ix_referral_referrer_email'), table_name='referral')
    op.drop_table('referral')

    op.drop_index(op.f('ix_referrer_campaign_id'), table_name='referrer')
    op.drop_index(op.f('ix_referrer_email'), table_name='referrer')
    op.drop_index(op.f('ix_referrer_referral_code'), table_name='referrer')
    op.drop_table('referrer')

    op.drop_index(op.f('ix_campaign_slug'), table_name='campaign')
    op.drop_table('campaign')
