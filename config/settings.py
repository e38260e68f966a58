"""
Configuration settings for the Voyage Passport API
"""
import os
from dotenv import load_dotenv

load_dotenv()


def _csv(value: str) -> list:
    return [item.strip() for item in value.split(",") if item.strip()]


# =============================================================================
# CRM (HubSpot)
# =============================================================================
HUBSPOT_API_TOKEN = os.getenv("HUBSPOT_API_TOKEN", "")
HUBSPOT_BASE_URL = os.getenv("HUBSPOT_BASE_URL", "https://api.hubapi.com")
HUBSPOT_TIMEOUT_SECONDS = float(os.getenv("HUBSPOT_TIMEOUT_SECONDS", "10.0"))

# Contact properties holding lifetime spend, in priority order
LIFETIME_POINTS_PROPERTIES = _csv(
    os.getenv("LIFETIME_POINTS_PROPERTIES", "hs_lifetime_revenue,lifetime_revenue")
)
# Contact property with a rolling annual spend figure. Empty means lifetime
# points are passed as the annual-spend proxy.
ANNUAL_SPEND_PROPERTY = os.getenv("ANNUAL_SPEND_PROPERTY", "")

# =============================================================================
# CMS (WordPress)
# =============================================================================
WORDPRESS_BASE_URL = os.getenv("WORDPRESS_BASE_URL", "https://cuvee.com/luxury")
CMS_TIMEOUT_SECONDS = float(os.getenv("CMS_TIMEOUT_SECONDS", "10.0"))
# Reservation image lookups run in parallel and share one time budget
CMS_IMAGE_WORKERS = int(os.getenv("CMS_IMAGE_WORKERS", "8"))
CMS_IMAGE_BUDGET_SECONDS = float(os.getenv("CMS_IMAGE_BUDGET_SECONDS", "5.0"))
FALLBACK_IMAGE_URL = os.getenv(
    "FALLBACK_IMAGE_URL",
    "https://images.unsplash.com/photo-1605540436563?q=80&w=2070&auto=format&fit=crop",
)

# =============================================================================
# Tier Table
# =============================================================================
TIER_CONFIG_PATH = os.getenv("TIER_CONFIG_PATH", "")

# =============================================================================
# Observability Configuration
# =============================================================================

# Structured Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "json")  # "json" or "console"
LOG_FILE = os.getenv("LOG_FILE", None)

# Prometheus Metrics
METRICS_ENABLED = os.getenv("METRICS_ENABLED", "true").lower() == "true"

# =============================================================================
# Retry Configuration
# =============================================================================
CRM_RETRY_MAX_ATTEMPTS = int(os.getenv("CRM_RETRY_MAX_ATTEMPTS", "3"))
CRM_RETRY_MIN_WAIT = float(os.getenv("CRM_RETRY_MIN_WAIT", "0.5"))
CRM_RETRY_MAX_WAIT = float(os.getenv("CRM_RETRY_MAX_WAIT", "5.0"))
CRM_TIMEOUT_SECONDS = float(os.getenv("CRM_TIMEOUT_SECONDS", "30.0"))

# =============================================================================
# HTTP
# =============================================================================
CORS_ORIGINS = _csv(
    os.getenv(
        "CORS_ORIGINS",
        "http://localhost:5173,http://localhost:3000,http://127.0.0.1:5173",
    )
)

# Stay times shown when the CRM has none
DEFAULT_CHECK_IN_TIME = "4:00 PM"
DEFAULT_CHECK_OUT_TIME = "11:00 AM"
