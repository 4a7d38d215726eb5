"""
CampaignRepository - Data access layer for Campaign entities
"""

from typing import List, Optional, Dict
from repositories.base_repository import BaseRepository, SortOrder
from referral_database import Campaign, Referrer, Referral
from services.enums import ReferralStatus
import logging

logger = logging.getLogger(__name__)


class CampaignRepository(BaseRepository[Campaign]):
    """Repository for Campaign data access"""

    def __init__(self, session):
        super().__init__(session, Campaign)

    def find_by_slug(self, slug: str, active_only: bool = False) -> Optional[Campaign]:
        """
        Find a campaign by slug.

        Args:
            slug: Campaign slug
            active_only: Hide inactive campaigns (public lookup path)
        """
        query = self.session.query(Campaign).filter(Campaign.slug == slug)
        if active_only:
            query = query.filter(Campaign.active.is_(True))
        return query.first()

    def slug_taken(self, slug: str, exclude_id: Optional[str] = None) -> bool:
        """Check whether another campaign already uses the slug."""
        query = self.session.query(Campaign.id).filter(Campaign.slug == slug)
        if exclude_id:
            query = query.filter(Campaign.id != exclude_id)
        return query.first() is not None

    def list_campaigns(self, active_only: bool = False) -> List[Campaign]:
        """All campaigns, newest first."""
        if active_only:
            return self.find_by(active=True, order_by='created_at', order=SortOrder.DESC)
        return self.get_all(order_by='created_at', order=SortOrder.DESC)

    def count_references(self, campaign_id: str) -> Dict[str, int]:
        """Number of referrers and referrals pointing at a campaign."""
        referrers = self.session.query(Referrer.id).filter(
            Referrer.campaign_id == campaign_id
        ).count()
        referrals = self.session.query(Referral.id).filter(
            Referral.campaign_id == campaign_id
        ).count()
        return {'referrers': referrers, 'referrals': referrals}

    def get_campaign_stats(self, campaign_id: str) -> Dict[str, int]:
        """Referrer / referral / qualified / rewarded counts for a campaign."""
        references = self.count_references(campaign_id)

        def count_status(status: ReferralStatus) -> int:
            return self.session.query(Referral.id).filter(
                Referral.campaign_id == campaign_id,
                Referral.status == status.value
            ).count()

        return {
            'referrers': references['referrers'],
            'referrals': references['referrals'],
            'qualified': count_status(ReferralStatus.QUALIFIED),
            'rewarded': count_status(ReferralStatus.REWARDED),
        }
