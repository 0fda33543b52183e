"""
HubSpot CRM integration for contact synchronization.
"""

from wealthiq.integrations.hubspot.client import HubSpotClient, get_hubspot_client
from wealthiq.integrations.hubspot.exceptions import (
    HubSpotError,
    HubSpotAuthenticationError,
    HubSpotRateLimitError,
    HubSpotNotFoundError,
    HubSpotConflictError,
    HubSpotValidationError,
    HubSpotConnectionError,
)
from wealthiq.integrations.hubspot.models import HubSpotContact

__all__ = [
    # Client
    "HubSpotClient",
    "get_hubspot_client",
    # Exceptions
    "HubSpotError",
    "HubSpotAuthenticationError",
    "HubSpotRateLimitError",
    "HubSpotNotFoundError",
    "HubSpotConflictError",
    "HubSpotValidationError",
    "HubSpotConnectionError",
    # Models
    "HubSpotContact",
]
