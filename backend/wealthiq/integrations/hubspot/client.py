"""
HubSpot CRM API client for contact synchronization.

This client handles:
- Contact search by exact email match
- Contact creation
- Contact property updates

Every request is bounded by the client timeout; a timed-out call raises
HubSpotConnectionError like any other network failure. The client never
retries on its own - callers decide whether and when to retry.

Documentation: https://developers.hubspot.com/docs/api/crm/contacts
"""

import logging
import re
from typing import Optional, Dict, Any

import httpx

from wealthiq.config.settings import SyncSettings, get_settings
from wealthiq.integrations.hubspot.exceptions import (
    HubSpotError,
    HubSpotAuthenticationError,
    HubSpotRateLimitError,
    HubSpotNotFoundError,
    HubSpotConflictError,
    HubSpotValidationError,
    HubSpotConnectionError,
)
from wealthiq.integrations.hubspot.models import HubSpotContact, build_contact_properties

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_BASE_URL = "https://api.hubapi.com"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_CONNECT_TIMEOUT_SECONDS = 10.0

CONTACTS_PATH = "/crm/v3/objects/contacts"
CONTACT_SEARCH_PATH = "/crm/v3/objects/contacts/search"
SEARCH_PROPERTIES = ["email", "firstname", "lastname"]

_EXISTING_ID_PATTERN = re.compile(r"Existing ID:\s*(\d+)")


class HubSpotClient:
    """
    Client for the HubSpot CRM v3 contacts API.

    SECURITY: The private app token must never be logged.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT_SECONDS,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize HubSpot client.

        Args:
            api_key: Private app access token
            base_url: API base URL (default: https://api.hubapi.com)
            timeout: Request timeout in seconds
            connect_timeout: Connection timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        if not api_key:
            raise ValueError(
                "HubSpot API key is required. Set HUBSPOT_API_KEY environment variable "
                "or pass api_key parameter."
            )

        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout, connect=connect_timeout),
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
                "Authorization": f"Bearer {api_key}",
            },
            transport=transport,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> "HubSpotClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _request(
        self,
        method: str,
        endpoint: str,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Make an HTTP request to the HubSpot API.

        Raises:
            HubSpotError: On API errors (subclass by status code)
            HubSpotConnectionError: On timeouts and network errors
        """
        try:
            response = self._client.request(method=method, url=endpoint, json=json)
        except httpx.TimeoutException as e:
            logger.error(
                "HubSpot API timeout",
                extra={"endpoint": endpoint, "error": str(e)},
            )
            raise HubSpotConnectionError(f"Request timeout: {e}")
        except httpx.RequestError as e:
            logger.error(
                "HubSpot API connection error",
                extra={"endpoint": endpoint, "error": str(e)},
            )
            raise HubSpotConnectionError(f"Connection error: {e}")

        if response.status_code >= 400:
            raise self._error_from_response(response, endpoint)

        if response.status_code == 204 or not response.content:
            return {}

        try:
            return response.json()
        except ValueError:
            logger.error(
                "HubSpot API returned invalid JSON",
                extra={"status_code": response.status_code, "endpoint": endpoint},
            )
            raise HubSpotError(
                "Invalid JSON response",
                status_code=response.status_code,
                response={"raw": response.text[:500]},
            )

    def _error_from_response(self, response: httpx.Response, endpoint: str) -> HubSpotError:
        """Map an error response to the matching HubSpotError subclass."""
        error_body: Dict[str, Any] = {}
        try:
            parsed = response.json()
            if isinstance(parsed, dict):
                error_body = parsed
        except ValueError:
            error_body = {"raw": response.text[:500]}

        message = error_body.get("message") or f"HubSpot API error: {response.status_code}"
        kwargs = {
            "correlation_id": error_body.get("correlationId"),
            "category": error_body.get("category"),
            "response": error_body,
        }

        logger.error(
            "HubSpot API error",
            extra={
                "status_code": response.status_code,
                "endpoint": endpoint,
                "correlation_id": kwargs["correlation_id"],
                "category": kwargs["category"],
            },
        )

        status_code = response.status_code
        if status_code in (401, 403):
            return HubSpotAuthenticationError(message, status_code=status_code, **kwargs)
        if status_code == 404:
            return HubSpotNotFoundError(message, **kwargs)
        if status_code == 409:
            match = _EXISTING_ID_PATTERN.search(message)
            return HubSpotConflictError(
                message,
                existing_id=match.group(1) if match else None,
                **kwargs,
            )
        if status_code == 429:
            retry_after = response.headers.get("Retry-After")
            return HubSpotRateLimitError(
                message,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
                **kwargs,
            )
        if status_code == 400:
            return HubSpotValidationError(message, **kwargs)
        return HubSpotError(message, status_code=status_code, **kwargs)

    def search_contact_by_email(self, email: str) -> Optional[HubSpotContact]:
        """
        Find the contact whose email property exactly matches.

        Returns:
            The first matching HubSpotContact, or None when there is no match
        """
        data = self._request(
            "POST",
            CONTACT_SEARCH_PATH,
            json={
                "filterGroups": [
                    {
                        "filters": [
                            {
                                "propertyName": "email",
                                "operator": "EQ",
                                "value": email,
                            }
                        ]
                    }
                ],
                "properties": SEARCH_PROPERTIES,
                "limit": 1,
            },
        )
        results = data.get("results") or []
        if not results:
            return None
        return HubSpotContact.from_dict(results[0])

    def create_contact(
        self,
        email: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        properties: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Create a contact with standard properties.

        Returns:
            The new contact ID
        """
        data = self._request(
            "POST",
            CONTACTS_PATH,
            json={
                "properties": build_contact_properties(
                    email, first_name, last_name, properties
                )
            },
        )
        contact_id = data.get("id")
        if not contact_id:
            raise HubSpotError("HubSpot create contact response has no id", response=data)

        logger.info("HubSpot contact created", extra={"contact_id": contact_id})
        return str(contact_id)

    def update_contact(self, contact_id: str, properties: Dict[str, Any]) -> None:
        """Patch properties on an existing contact."""
        self._request(
            "PATCH",
            f"{CONTACTS_PATH}/{contact_id}",
            json={"properties": properties},
        )
        logger.info("HubSpot contact updated", extra={"contact_id": contact_id})


def get_hubspot_client(settings: Optional[SyncSettings] = None) -> HubSpotClient:
    """
    Factory function to create a HubSpot client from settings.

    Raises:
        ValueError: If HUBSPOT_API_KEY is not configured
    """
    settings = settings or get_settings()
    return HubSpotClient(
        api_key=settings.hubspot_api_key,
        base_url=settings.hubspot_base_url,
        timeout=settings.hubspot_timeout_seconds,
        connect_timeout=settings.hubspot_connect_timeout_seconds,
    )
