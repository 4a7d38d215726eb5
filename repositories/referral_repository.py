"""
ReferralRepository - Data access layer for Referral entities
"""

from datetime import datetime
from typing import List, Optional, Dict
from sqlalchemy import func
from repositories.base_repository import BaseRepository, SortOrder
from referral_database import Referral
from services.enums import ReferralStatus
import logging

logger = logging.getLogger(__name__)


class ReferralRepository(BaseRepository[Referral]):
    """Repository for Referral data access"""

    def __init__(self, session):
        super().__init__(session, Referral)

    def list_referrals(self, campaign_id: Optional[str] = None,
                       status: Optional[str] = None) -> List[Referral]:
        """Referrals newest first, optionally filtered by campaign and status."""
        filters = {}
        if campaign_id:
            filters['campaign_id'] = campaign_id
        if status:
            filters['status'] = status
        return self.find_by(order_by='created_at', order=SortOrder.DESC, **filters)

    def delete_by_referrer_email(self, referrer_email: str) -> int:
        """Delete all referrals made through a referrer. Returns rows deleted."""
        return self.delete_many({'referrer_email': referrer_email})

    def count_by_status(self, campaign_id: Optional[str] = None) -> Dict[str, int]:
        """
        Aggregate referral counts per status.

        Returns:
            Dict with 'total' plus one key per ReferralStatus value, zero-filled
        """
        query = self.session.query(Referral.status, func.count(Referral.id))
        if campaign_id:
            query = query.filter(Referral.campaign_id == campaign_id)
        rows = query.group_by(Referral.status).all()

        counts = {status.value: 0 for status in ReferralStatus}
        for status, count in rows:
            counts[status] = counts.get(status, 0) + count

        stats = {'total': sum(counts.values())}
        stats.update(counts)
        return stats

    def find_due_for_qualification(self, as_of: datetime) -> List[Referral]:
        """Purchased referrals whose reward window ended on or before as_of."""
        return self.session.query(Referral).filter(
            Referral.status == ReferralStatus.PURCHASED.value,
            Referral.reward_eligible_date.isnot(None),
            Referral.reward_eligible_date <= as_of
        ).order_by(Referral.reward_eligible_date).all()
