"""
Repository Layer - Data Access Abstraction
Implements the Repository Pattern for database isolation
"""

from .base_repository import BaseRepository, SortOrder
from .campaign_repository import CampaignRepository
from .referrer_repository import ReferrerRepository
from .referral_repository import ReferralRepository

__all__ = [
    'BaseRepository',
    'SortOrder',
    'CampaignRepository',
    'ReferrerRepository',
    'ReferralRepository'
]
