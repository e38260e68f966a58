"""
HubSpot CRM client

The CRM capability the API is built on:
- find_contact_by_email(email) -> {id, properties} | None
- find_deals_for_contact(contact_id) -> raw deal records
- find_deals_by_confirmation(number) -> raw deal records (guest lookup)

Production Features:
- Retry with exponential backoff on 429/5xx and network errors
- Structured logging and Prometheus latency metrics per operation
"""
from dataclasses import replace
from typing import Any, Dict, List, Optional

import requests

from config import settings
from infrastructure.logging import get_logger, log_external_call
from infrastructure.metrics import track_external_call
from infrastructure.retry import RetryConfig, retry_crm_call

logger = get_logger("hubspot_client")

CONTACT_PROPERTIES = [
    "email",
    "firstname",
    "lastname",
    "hs_lifetime_revenue",
    "lifetime_revenue",
    "num_associated_deals",
    "sub_type__c",
]

DEAL_PROPERTIES = [
    "dealname",
    "amount",
    "dealstage",
    "closedate",
    "property_name",
    "check_in",
    "check_out",
    "checkin",
    "checkout",
    "check_in_date",
    "check_out_date",
    "arrival_date",
    "departure_date",
    "confirmation_number",
    "createdate",
    "hs_lastmodifieddate",
]

# HubSpot batch read accepts at most 100 ids per call
BATCH_READ_LIMIT = 100


class CRMError(Exception):
    """Base error for CRM calls"""


class CRMConfigurationError(CRMError):
    """The CRM client has no API token"""


class CRMTransientError(CRMError):
    """Rate limit, server error or network failure; safe to retry"""


class CRMRequestError(CRMError):
    """The CRM rejected the request"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class HubSpotClient:
    """
    Thin HubSpot CRM v3 client.

    Args:
        api_token: Private app token (defaults to HUBSPOT_API_TOKEN)
        base_url: API root (defaults to HUBSPOT_BASE_URL)
        timeout: Per-request timeout in seconds
        session: requests.Session or compatible object
        retry_config: Retry policy; transient errors are always the retry trigger
    """

    def __init__(
        self,
        api_token: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        self.api_token = settings.HUBSPOT_API_TOKEN if api_token is None else api_token
        self.base_url = (base_url or settings.HUBSPOT_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.HUBSPOT_TIMEOUT_SECONDS
        self.session = session or requests.Session()

        config = replace(retry_config or RetryConfig.from_settings(), retry_on=(CRMTransientError,))
        self._request = retry_crm_call(config)(self._send)

    def _headers(self) -> Dict[str, str]:
        return {
            "accept": "application/json",
            "authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
        }

    def _send(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        """Send one request and map failures onto the CRM error types"""
        if not self.api_token:
            raise CRMConfigurationError("HUBSPOT_API_TOKEN is not configured")

        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method, url, headers=self._headers(), timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            raise CRMTransientError(f"HubSpot API unreachable: {e}") from e

        if response.status_code == 429 or response.status_code >= 500:
            raise CRMTransientError(
                f"HubSpot API Error: HTTP {response.status_code}"
            )
        if response.status_code >= 400:
            raise CRMRequestError(
                f"HubSpot API Error: {_error_message(response)}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise CRMRequestError("HubSpot API returned invalid JSON") from e

    @log_external_call("hubspot", "find_contact_by_email")
    @track_external_call("hubspot", "find_contact_by_email")
    def find_contact_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """Return the first contact whose email matches, or None"""
        data = self._request(
            "POST",
            "/crm/v3/objects/contacts/search",
            json={
                "filterGroups": [
                    {"filters": [{"propertyName": "email", "operator": "EQ", "value": email}]}
                ],
                "properties": CONTACT_PROPERTIES,
                "limit": 1,
            },
        )
        results = data.get("results") or []
        return results[0] if results else None

    @log_external_call("hubspot", "find_deals_for_contact")
    @track_external_call("hubspot", "find_deals_for_contact")
    def find_deals_for_contact(self, contact_id: str) -> List[Dict[str, Any]]:
        """Return every deal associated with a contact"""
        deal_ids = self._associated_deal_ids(contact_id)
        if not deal_ids:
            return []

        deals = []
        for start in range(0, len(deal_ids), BATCH_READ_LIMIT):
            chunk = deal_ids[start:start + BATCH_READ_LIMIT]
            data = self._request(
                "POST",
                "/crm/v3/objects/deals/batch/read",
                json={
                    "properties": DEAL_PROPERTIES,
                    "inputs": [{"id": deal_id} for deal_id in chunk],
                },
            )
            deals.extend(data.get("results") or [])
        return deals

    @log_external_call("hubspot", "find_deals_by_confirmation")
    @track_external_call("hubspot", "find_deals_by_confirmation")
    def find_deals_by_confirmation(self, confirmation_number: str) -> List[Dict[str, Any]]:
        """Return deals carrying a confirmation number"""
        data = self._request(
            "POST",
            "/crm/v3/objects/deals/search",
            json={
                "filterGroups": [
                    {
                        "filters": [
                            {
                                "propertyName": "confirmation_number",
                                "operator": "EQ",
                                "value": confirmation_number,
                            }
                        ]
                    }
                ],
                "properties": DEAL_PROPERTIES,
                "limit": 10,
            },
        )
        return data.get("results") or []

    def _associated_deal_ids(self, contact_id: str) -> List[str]:
        deal_ids: List[str] = []
        params: Dict[str, Any] = {}
        while True:
            data = self._request(
                "GET",
                f"/crm/v3/objects/contacts/{contact_id}/associations/deals",
                params=params,
            )
            deal_ids.extend(str(r["id"]) for r in data.get("results") or [] if r.get("id"))

            after = ((data.get("paging") or {}).get("next") or {}).get("after")
            if not after:
                return deal_ids
            params = {"after": after}


def _error_message(response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict) and body.get("message"):
        return body["message"]
    return f"HTTP {response.status_code}"
