"""
External capabilities for the Voyage Passport API
"""
from .hubspot_client import (
    HubSpotClient,
    CRMError,
    CRMConfigurationError,
    CRMRequestError,
    CRMTransientError,
)
from .wordpress_client import WordPressClient, get_destination_slug
from .experiences import ScrapeResult, scrape_destination_experiences
from .session import GuestReference, IdentityError, UserIdentity, resolve_current_user

__all__ = [
    "HubSpotClient",
    "CRMError",
    "CRMConfigurationError",
    "CRMRequestError",
    "CRMTransientError",
    "WordPressClient",
    "get_destination_slug",
    "ScrapeResult",
    "scrape_destination_experiences",
    "GuestReference",
    "IdentityError",
    "UserIdentity",
    "resolve_current_user",
]
