"""
ReferrerRepository - Data access layer for Referrer entities
"""

from typing import List, Optional
from repositories.base_repository import BaseRepository, SortOrder
from referral_database import Referrer
import logging

logger = logging.getLogger(__name__)


class ReferrerRepository(BaseRepository[Referrer]):
    """Repository for Referrer data access"""

    def __init__(self, session):
        super().__init__(session, Referrer)

    def find_by_code(self, referral_code: str) -> Optional[Referrer]:
        return self.find_one_by(referral_code=referral_code)

    def find_by_email_and_campaign(self, email: str, campaign_id: str) -> Optional[Referrer]:
        """Email is expected to be normalized already."""
        return self.find_one_by(email=email, campaign_id=campaign_id)

    def find_all_by_email(self, email: str) -> List[Referrer]:
        """Every registration of an email, across campaigns."""
        return self.find_by(email=email, order_by='created_at')

    def list_referrers(self, campaign_id: Optional[str] = None) -> List[Referrer]:
        """Referrers newest first, optionally scoped to one campaign."""
        if campaign_id:
            return self.find_by(campaign_id=campaign_id, order_by='created_at', order=SortOrder.DESC)
        return self.get_all(order_by='created_at', order=SortOrder.DESC)

    def increment_referral_count(self, referrer_id: int, amount: int = 1) -> int:
        """
        Atomically increment total_referrals in SQL.

        The update runs as ``total_referrals = total_referrals + amount`` so
        concurrent referrals for the same referrer never under-count.

        Returns:
            Number of rows updated (0 if the referrer no longer exists)
        """
        updated = self.session.query(Referrer).filter(
            Referrer.id == referrer_id
        ).update(
            {Referrer.total_referrals: Referrer.total_referrals + amount},
            synchronize_session=False
        )
        self.session.flush()
        return updated
