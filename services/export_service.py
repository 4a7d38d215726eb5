"""
ExportService - CSV exports for the admin panel
"""

import csv
import io
from typing import Iterable, List, Optional

from utils.datetime_utils import format_utc_iso, utc_date_stamp

REFERRAL_COLUMNS = [
    ('ID', 'id'),
    ('Referrer Name', 'referrer_name'),
    ('Referrer Email', 'referrer_email'),
    ('Friend Name', 'referred_name'),
    ('Friend Email', 'referred_email'),
    ('Friend Phone', 'referred_phone'),
    ('Child Grade', 'referred_child_grade'),
    ('Campaign ID', 'campaign_id'),
    ('Status', 'status'),
    ('Signup Date', 'signup_date'),
    ('Purchase Date', 'purchase_date'),
    ('Reward Eligible Date', 'reward_eligible_date'),
    ('Reward Issued Date', 'reward_issued_date'),
    ('Notes', 'notes'),
    ('Created At', 'created_at'),
]

REFERRER_COLUMNS = [
    ('Name', 'name'),
    ('Email', 'email'),
    ('Referral Code', 'referral_code'),
    ('Referral Link', 'referral_link'),
    ('Total Referrals', 'total_referrals'),
    ('Campaign ID', 'campaign_id'),
    ('Created At', 'created_at'),
]


class ExportService:
    """Builds CSV downloads of referrals and referrers"""

    def __init__(self, referral_service, referrer_service):
        self.referral_service = referral_service
        self.referrer_service = referrer_service

    def export_referrals(self, campaign_id: Optional[str] = None) -> str:
        referrals = self.referral_service.list_referrals(campaign_id=campaign_id)
        return self._to_csv(REFERRAL_COLUMNS, referrals)

    def export_referrers(self, campaign_id: Optional[str] = None) -> str:
        referrers = self.referrer_service.list_referrers(campaign_id=campaign_id)
        return self._to_csv(REFERRER_COLUMNS, referrers)

    @staticmethod
    def filename(export_type: str) -> str:
        """e.g. referrals-2025-01-31.csv"""
        return f"{export_type}-{utc_date_stamp()}.csv"

    @staticmethod
    def _to_csv(columns: List[tuple], rows: Iterable) -> str:
        output = io.StringIO()
        writer = csv.writer(output, lineterminator='\n')
        writer.writerow([header for header, _ in columns])
        for row in rows:
            writer.writerow([_cell(getattr(row, attribute, None)) for _, attribute in columns])
        return output.getvalue()


def _cell(value) -> str:
    if value is None:
        return ''
    if hasattr(value, 'isoformat'):
        return format_utc_iso(value)
    return str(value)
