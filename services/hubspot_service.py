"""
HubSpot integration

Contacts are pushed through the public Forms API (no auth) and, when an
access token is configured, existing contacts are updated through the CRM
v3 API. Every call is bounded by a timeout and returns a Result; nothing
here raises to the caller.
"""

import time
from typing import Dict, Any, Optional

import requests

from logging_config import get_logger, performance_logger
from services.common.result import Result
from services.enums import ErrorCode
from utils.referral_codes import split_full_name

logger = get_logger(__name__)

FORMS_API_URL = "https://api.hsforms.com/submissions/v3/integration/submit/{portal_id}/{form_guid}"
CRM_API_URL = "https://api.hubapi.com/crm/v3/objects/contacts"


class HubSpotService:
    """Client for HubSpot form submissions and contact updates"""

    def __init__(self,
                 portal_id: Optional[str] = None,
                 form_guid: Optional[str] = None,
                 access_token: Optional[str] = None,
                 page_uri: Optional[str] = None,
                 timeout: float = 5.0,
                 friend_form_guid: Optional[str] = None):
        """
        Args:
            portal_id: Default portal, used when a campaign has none
            form_guid: Default form, used when a campaign has none
            access_token: Private app token for the CRM API (contact updates)
            page_uri: Reported to HubSpot as the submitting page
            timeout: Seconds before an outbound call is abandoned
            friend_form_guid: Default form for referred friends (falls back to form_guid)
        """
        self.portal_id = portal_id
        self.form_guid = form_guid
        self.friend_form_guid = friend_form_guid
        self.access_token = access_token
        self.page_uri = page_uri
        self.timeout = timeout

    def submit_contact(self,
                       fields: Dict[str, Any],
                       portal_id: Optional[str] = None,
                       form_guid: Optional[str] = None,
                       page_name: str = 'Referral Registration') -> Result[bool]:
        """
        Submit a contact to a HubSpot form.

        Fields with empty values are dropped. Per-campaign ids fall back to
        the configured defaults.
        """
        portal_id = portal_id or self.portal_id
        form_guid = form_guid or self.form_guid
        if not portal_id or not form_guid:
            logger.warning("HubSpot configuration missing, skipping form submission")
            return Result.failure("HubSpot configuration missing", code=ErrorCode.NOT_CONFIGURED)

        payload = {
            'fields': [
                {'name': name, 'value': str(value)}
                for name, value in fields.items()
                if value is not None and value != ''
            ],
            'context': {
                'pageUri': self.page_uri,
                'pageName': page_name,
            },
        }
        url = FORMS_API_URL.format(portal_id=portal_id, form_guid=form_guid)

        return self._request('POST', url, endpoint='forms/submit', json_data=payload)

    def submit_referrer(self, email: str, name: str, referral_link: str,
                        portal_id: Optional[str] = None,
                        form_guid: Optional[str] = None) -> Result[bool]:
        firstname, lastname = split_full_name(name)
        return self.submit_contact(
            {
                'email': email,
                'firstname': firstname,
                'lastname': lastname,
                'referral_link': referral_link,
            },
            portal_id=portal_id,
            form_guid=form_guid,
            page_name='Referral Registration',
        )

    def submit_referred_friend(self, email: str, name: str, phone: Optional[str],
                               referrer_email: str,
                               child_grade: Optional[str] = None,
                               custom_fields: Optional[Dict[str, str]] = None,
                               portal_id: Optional[str] = None,
                               form_guid: Optional[str] = None) -> Result[bool]:
        firstname, lastname = split_full_name(name)
        fields = dict(custom_fields or {})
        fields.update({
            'email': email,
            'firstname': firstname,
            'lastname': lastname,
            'phone': phone,
            'child_grade': child_grade,
            'referred_by': referrer_email,
        })
        return self.submit_contact(
            fields,
            portal_id=portal_id,
            form_guid=form_guid or self.friend_form_guid,
            page_name='Friend Referral Signup',
        )

    def update_contact_property(self, email: str, properties: Dict[str, Any]) -> Result[bool]:
        """
        Find a contact by email and PATCH its properties.

        Used to flip the referrer's referral status so HubSpot workflows
        (reward emails) can trigger.
        """
        if not self.access_token:
            logger.warning("HubSpot access token missing, skipping contact update")
            return Result.failure("HubSpot access token missing", code=ErrorCode.NOT_CONFIGURED)

        search = self._request(
            'POST',
            f"{CRM_API_URL}/search",
            endpoint='contacts/search',
            json_data={
                'filterGroups': [{
                    'filters': [{'propertyName': 'email', 'operator': 'EQ', 'value': email}]
                }],
                'properties': ['email'],
                'limit': 1,
            },
            authenticated=True,
            return_json=True,
        )
        if search.is_failure:
            return search

        results = (search.data or {}).get('results') or []
        if not results:
            return Result.failure(f"HubSpot contact not found for {email}", code=ErrorCode.NOT_FOUND)

        contact_id = results[0].get('id')
        return self._request(
            'PATCH',
            f"{CRM_API_URL}/{contact_id}",
            endpoint='contacts/update',
            json_data={'properties': {k: v for k, v in properties.items() if v is not None}},
            authenticated=True,
        )

    def _request(self, method: str, url: str, endpoint: str,
                 json_data: Optional[Dict] = None,
                 authenticated: bool = False,
                 return_json: bool = False) -> Result:
        headers = {'Content-Type': 'application/json'}
        if authenticated:
            headers['Authorization'] = f"Bearer {self.access_token}"

        started = time.monotonic()
        status_code = None
        try:
            response = requests.request(
                method=method,
                url=url,
                headers=headers,
                json=json_data,
                timeout=self.timeout,
            )
            status_code = response.status_code
        except requests.exceptions.RequestException as e:
            logger.error("HubSpot request failed", endpoint=endpoint, error=str(e))
            return Result.failure(f"HubSpot request failed: {e}", code=ErrorCode.EXTERNAL_SERVICE_ERROR)
        finally:
            performance_logger.log_api_call(
                'hubspot', endpoint, (time.monotonic() - started) * 1000, status_code
            )

        if not response.ok:
            logger.error(
                "HubSpot request rejected",
                endpoint=endpoint,
                status_code=response.status_code,
                body=response.text[:500],
            )
            return Result.failure(
                f"HubSpot returned {response.status_code}",
                code=ErrorCode.EXTERNAL_SERVICE_ERROR,
                metadata={'status_code': response.status_code},
            )

        if return_json:
            try:
                return Result.success(response.json())
            except ValueError:
                return Result.failure("HubSpot returned invalid JSON", code=ErrorCode.EXTERNAL_SERVICE_ERROR)
        return Result.success(True)
