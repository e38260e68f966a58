"""
FastAPI Backend for the Voyage Passport

Proxies CRM and CMS calls for the front-end and shapes the data:
tier assessment from lifetime spend, and reservations from CRM deals.
"""
import concurrent.futures
import contextvars
import sys
from datetime import date, datetime
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

# Add parent directory to path to import loyalty, tools and config
sys.path.insert(0, str(Path(__file__).parent.parent))

from config import settings
from config.tier_config import create_tier_engine
from infrastructure.logging import LogContext, configure_logging, get_logger, set_correlation_id
from infrastructure.metrics import metrics
from loyalty import InvalidDealBatch, Reservation, TierEngine, build_tier_info, normalize_with_report
from loyalty.field_aliases import FieldAlias, coerce_non_negative
from tools.experiences import ScrapeResult, scrape_destination_experiences
from tools.hubspot_client import CRMConfigurationError, CRMError, HubSpotClient
from tools.session import GuestReference, Identity, IdentityError, UserIdentity, resolve_current_user
from tools.wordpress_client import WordPressClient, get_destination_slug

configure_logging(
    log_level=settings.LOG_LEVEL,
    json_format=settings.LOG_FORMAT == "json",
    log_file=settings.LOG_FILE,
)
metrics.enabled = settings.METRICS_ENABLED
logger = get_logger("api")

# Loaded once; an invalid table raises InvalidConfiguration here and the
# service never starts.
tier_engine = create_tier_engine(settings.TIER_CONFIG_PATH or None)

LIFETIME_POINTS = FieldAlias("lifetime_points", tuple(settings.LIFETIME_POINTS_PROPERTIES))

app = FastAPI(
    title="Voyage Passport API",
    description="Loyalty tiers and reservations for Voyage Passport members",
    version="1.0.0"
)

# CORS for the front-end
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def correlation_id_middleware(request: Request, call_next):
    cid = set_correlation_id(request.headers.get("X-Request-ID"))
    with LogContext(method=request.method, path=request.url.path):
        response = await call_next(request)
    response.headers["X-Request-ID"] = cid
    return response


@app.exception_handler(CRMError)
async def crm_error_handler(request: Request, exc: CRMError):
    status_code = 503 if isinstance(exc, CRMConfigurationError) else 502
    logger.error("crm_error", path=request.url.path, error=str(exc), error_type=type(exc).__name__)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.exception_handler(InvalidDealBatch)
async def invalid_deal_batch_handler(request: Request, exc: InvalidDealBatch):
    logger.error("invalid_deal_batch", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=502, content={"detail": "CRM returned malformed deal data"})


# ============ Pydantic Models ============

class HealthStatus(BaseModel):
    status: str
    service: str
    tier_table_version: str


class TierSummary(BaseModel):
    level: int
    name: str
    threshold: int
    points_label: str
    tier_number: Optional[int] = None
    color: str
    signature_benefit: str
    earn_back_percent: int
    max_credit_per_stay: int
    reward: str
    message: str
    short_reveal: str
    is_legacy: bool
    invite_only: bool
    circle_access: List[str] = []


class TierTable(BaseModel):
    version: str
    tiers: List[TierSummary]


class FeaturedOffer(BaseModel):
    id: Optional[int] = None
    title: str
    content: str
    featured_image: str
    offer_title: str
    offer_subtitle: str
    offer_type: str
    offer_link: str


class FeaturedOffers(BaseModel):
    success: bool
    offers: List[FeaturedOffer]


class ExperienceItem(BaseModel):
    title: str
    description: str
    image: str


class PropertyExperiences(BaseModel):
    success: bool
    experiences: List[ExperienceItem]
    destination: Optional[str] = None
    location: Optional[str] = None
    message: Optional[str] = None


# ============ Dependencies ============

@lru_cache()
def get_crm_client() -> HubSpotClient:
    return HubSpotClient()


@lru_cache()
def get_cms_client() -> WordPressClient:
    return WordPressClient()


def get_tier_engine() -> TierEngine:
    return tier_engine


def get_experience_scraper() -> Callable[[str], ScrapeResult]:
    return scrape_destination_experiences


def get_clock() -> datetime:
    return datetime.now()


def current_user(
    email: Optional[str] = Query(None),
    booking_number: Optional[str] = Query(None),
    last_name: Optional[str] = Query(None),
) -> Identity:
    try:
        return resolve_current_user(email=email, booking_number=booking_number, last_name=last_name)
    except IdentityError as e:
        raise HTTPException(status_code=400, detail=str(e))


# ============ Helper Functions ============

def lifetime_points_from(properties: Dict[str, Any]) -> float:
    """Lifetime points from contact properties, clamped to >= 0"""
    return coerce_non_negative(LIFETIME_POINTS.resolve(properties))


def annual_spend_from(properties: Dict[str, Any], lifetime_points: float) -> Tuple[float, str]:
    """
    Annual spend to feed the tier engine, and where it came from.

    Uses ANNUAL_SPEND_PROPERTY when configured and present on the contact;
    otherwise lifetime points stand in.
    """
    if settings.ANNUAL_SPEND_PROPERTY:
        raw = properties.get(settings.ANNUAL_SPEND_PROPERTY)
        if raw not in (None, ""):
            return coerce_non_negative(raw), "contact_property"
    return lifetime_points, "lifetime_proxy"


def format_display_date(value: Optional[date]) -> str:
    if not value:
        return ""
    return f"{value.strftime('%b')} {value.day}, {value.year}"


def lookup_images(reservations: List[Reservation], cms: WordPressClient) -> Dict[Tuple[str, str], Optional[str]]:
    """
    Best-effort images keyed by (property_name, location).

    Each distinct property is looked up once, in parallel, and all lookups
    share CMS_IMAGE_BUDGET_SECONDS. Lookups still running when the budget
    runs out are abandoned and get no image.
    """
    keys = list(dict.fromkeys((r.property_name, r.location) for r in reservations))
    if not keys:
        return {}

    executor = concurrent.futures.ThreadPoolExecutor(
        max_workers=max(1, min(settings.CMS_IMAGE_WORKERS, len(keys)))
    )
    try:
        future_to_key = {
            # Each lookup logs under the request's correlation ID
            executor.submit(
                contextvars.copy_context().run, cms.get_property_image, name, location
            ): (name, location)
            for name, location in keys
        }
        done, pending = concurrent.futures.wait(
            future_to_key, timeout=settings.CMS_IMAGE_BUDGET_SECONDS
        )
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    images: Dict[Tuple[str, str], Optional[str]] = {key: None for key in keys}
    for future in done:
        key = future_to_key[future]
        error = future.exception()
        if error is not None:
            logger.warning("image_lookup_failed", property_name=key[0], error=str(error))
            continue
        images[key] = future.result()
    if pending:
        logger.warning(
            "image_lookup_budget_exceeded",
            pending=len(pending),
            budget_seconds=settings.CMS_IMAGE_BUDGET_SECONDS,
        )
    return images


def serialize_reservation(reservation: Reservation, image: Optional[str]) -> Dict[str, Any]:
    """Reservation payload with display fields and an image (fallback when None)"""
    payload = reservation.to_dict()
    payload.update({
        "start_date": format_display_date(reservation.check_in),
        "end_date": format_display_date(reservation.check_out),
        "check_in_time": settings.DEFAULT_CHECK_IN_TIME,
        "check_out_time": settings.DEFAULT_CHECK_OUT_TIME,
        "image": image or settings.FALLBACK_IMAGE_URL,
    })
    return payload


def _deal_name(deal: Any) -> Optional[str]:
    if not isinstance(deal, dict):
        return None
    properties = deal.get("properties")
    source = properties if isinstance(properties, dict) else deal
    return source.get("dealname")


def _find_contact(crm: HubSpotClient, email: str) -> Dict[str, Any]:
    contact = crm.find_contact_by_email(email)
    if not contact:
        raise HTTPException(status_code=404, detail=f"Contact not found in HubSpot: {email}")
    return contact


# ============ API Endpoints ============

@app.get("/api/health", response_model=HealthStatus)
def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "voyage-passport-api",
        "tier_table_version": tier_engine.version,
    }


@app.get("/api/tiers", response_model=TierTable)
def list_tiers(engine: TierEngine = Depends(get_tier_engine)):
    """Configured tier table, lowest first"""
    return {"version": engine.version, "tiers": engine.tier_table()}


@app.get("/api/voyage-passport")
@app.get("/api-voyage-passport.php")
def get_voyage_passport(
    user: Identity = Depends(current_user),
    crm: HubSpotClient = Depends(get_crm_client),
    engine: TierEngine = Depends(get_tier_engine),
):
    """
    Voyage Passport for a profile user.

    Looks the contact up by email and places its lifetime spend on the tier table.
    """
    if not isinstance(user, UserIdentity):
        raise HTTPException(status_code=400, detail="Email parameter is required")

    contact = _find_contact(crm, user.email)
    properties = contact.get("properties") or {}

    voyage_points = lifetime_points_from(properties)
    annual_spend, annual_spend_source = annual_spend_from(properties, voyage_points)
    assessment = engine.assess(voyage_points, annual_spend)

    tier_name = assessment.current_tier.name if assessment.current_tier else None
    metrics.record_tier_assessment(tier_name)
    logger.info(
        "tier_assessed",
        contact_id=contact.get("id"),
        tier=tier_name,
        progress_percentage=round(assessment.progress_percentage, 2),
        annual_spend_source=annual_spend_source,
    )

    return {
        "success": True,
        "email": user.email,
        "contact_id": contact.get("id"),
        "name": {
            "first": properties.get("firstname") or "",
            "last": properties.get("lastname") or "",
        },
        "voyage_points": voyage_points,
        "annual_spend": annual_spend,
        "annual_spend_source": annual_spend_source,
        "stay_count": int(coerce_non_negative(properties.get("num_associated_deals"))),
        "tier_status_hubspot": properties.get("sub_type__c") or None,
        "tier_info": build_tier_info(assessment),
        "raw_hubspot_data": properties,
    }


@app.get("/api/reservations")
def get_reservations(
    user: Identity = Depends(current_user),
    crm: HubSpotClient = Depends(get_crm_client),
    cms: WordPressClient = Depends(get_cms_client),
    now: datetime = Depends(get_clock),
):
    """
    Reservations for a profile user (email) or a guest (booking number).

    Sorted current, then upcoming, then past.
    """
    response: Dict[str, Any] = {"success": True}

    if isinstance(user, GuestReference):
        deals = [
            deal for deal in crm.find_deals_by_confirmation(user.booking_number)
            if user.matches_deal_name(_deal_name(deal))
        ]
        if not deals:
            raise HTTPException(status_code=404, detail=f"Booking not found: {user.booking_number}")
        response.update({"booking_number": user.booking_number, "contact_id": None})
    else:
        contact = _find_contact(crm, user.email)
        deals = crm.find_deals_for_contact(contact["id"])
        response.update({"email": user.email, "contact_id": contact["id"]})

    result = normalize_with_report(deals, now)
    metrics.record_normalization(result)
    logger.info(
        "reservations_normalized",
        user_type=user.user_type,
        count=len(result.reservations),
        skipped=result.skipped_count,
    )

    images = lookup_images(result.reservations, cms)
    response["reservations"] = [
        serialize_reservation(r, images[(r.property_name, r.location)])
        for r in result.reservations
    ]
    response["skipped"] = [record.to_dict() for record in result.skipped]
    return response


@app.get("/api/featured-offers", response_model=FeaturedOffers)
def get_featured_offers(cms: WordPressClient = Depends(get_cms_client)):
    """Featured offers from the CMS"""
    return {"success": True, "offers": cms.get_featured_offers()}


@app.get("/api/property-experiences", response_model=PropertyExperiences, response_model_exclude_none=True)
def get_property_experiences(
    property_name: Optional[str] = Query(None, alias="propertyName"),
    location: Optional[str] = Query(None),
    scrape: Callable[[str], ScrapeResult] = Depends(get_experience_scraper),
):
    """Experiences for the destination a property sits in"""
    if not property_name:
        raise HTTPException(status_code=400, detail="Property name parameter is required")

    if not location:
        return {
            "success": True,
            "experiences": [],
            "message": "Location data needed to fetch experiences",
        }

    slug = get_destination_slug(location)
    if not slug:
        return {
            "success": True,
            "experiences": [],
            "message": f"No destination mapping found for location: {location}",
        }

    result = scrape(slug)
    payload: Dict[str, Any] = {
        "success": True,
        "experiences": [experience.to_dict() for experience in result.experiences],
        "destination": slug,
        "location": location,
    }
    if not result.ok:
        payload["message"] = "Experiences are temporarily unavailable"
    return payload


@app.get("/metrics")
def get_metrics():
    """Prometheus metrics"""
    return Response(content=metrics.get_metrics(), media_type=metrics.content_type)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8080)
