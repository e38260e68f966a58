"""
WordPress CMS client

Best-effort lookups against the marketing site's REST API:
- featured offers
- featured image for a property, falling back to its destination page
- location -> destination page slug

Every lookup degrades to an empty result or None on failure; the CMS never
decides whether a passport or reservation response succeeds.
"""
from typing import Any, Dict, List, Optional

import requests

from config import settings
from infrastructure.logging import log_external_call
from infrastructure.metrics import track_external_call

DESTINATION_SLUGS = {
    "aspen": "aspen-colorado",
    "aspen, colorado": "aspen-colorado",
    "aspen, co": "aspen-colorado",
    "los cabos": "mexico-los-cabos-luxury-rentals",
    "cabo": "mexico-los-cabos-luxury-rentals",
    "cabo san lucas": "mexico-los-cabos-luxury-rentals",
    "san jose del cabo": "mexico-los-cabos-luxury-rentals",
    "jackson hole": "jackson-hole-wyoming",
    "jackson hole, wyoming": "jackson-hole-wyoming",
    "jackson hole, wy": "jackson-hole-wyoming",
    "park city": "park-city-utah",
    "park city, utah": "park-city-utah",
    "park city, ut": "park-city-utah",
    "scottsdale": "scottsdale-arizona",
    "scottsdale, arizona": "scottsdale-arizona",
    "scottsdale, az": "scottsdale-arizona",
    "big sky": "big-sky-montana",
    "big sky, montana": "big-sky-montana",
    "big sky, mt": "big-sky-montana",
    "lake tahoe": "lake-tahoe-california",
    "tahoe": "lake-tahoe-california",
    "steamboat springs": "steamboat-springs-colorado",
    "steamboat": "steamboat-springs-colorado",
    "telluride": "telluride-colorado",
    "telluride, colorado": "telluride-colorado",
    "vail": "vail-colorado",
    "vail, colorado": "vail-colorado",
    "breckenridge": "breckenridge-colorado",
    "breckenridge, colorado": "breckenridge-colorado",
}


def get_destination_slug(location: Optional[str]) -> Optional[str]:
    """Map a free-text location to a destination page slug"""
    if not location:
        return None
    return DESTINATION_SLUGS.get(location.strip().lower())


def _featured_image_from(item: Dict[str, Any]) -> Optional[str]:
    """Featured image URL from an _embed'ed WordPress object"""
    media_list = (item.get("_embedded") or {}).get("wp:featuredmedia") or []
    if not media_list or not isinstance(media_list[0], dict):
        return None
    media = media_list[0]
    full = ((media.get("media_details") or {}).get("sizes") or {}).get("full") or {}
    return full.get("source_url") or media.get("source_url") or None


class CMSError(Exception):
    """The CMS was unreachable or returned something that is not JSON"""


class WordPressClient:
    """
    Client for the marketing site's WordPress REST API.

    Args:
        base_url: Site root, e.g. https://cuvee.com/luxury
        timeout: Per-request timeout in seconds
        session: requests.Session or compatible object
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or settings.WORDPRESS_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.CMS_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    @property
    def api_url(self) -> str:
        return f"{self.base_url}/wp-json/wp/v2"

    def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET and decode JSON"""
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            raise CMSError(f"WordPress API error: {e}") from e

    # Each fetch is one instrumented CMS call and raises CMSError on failure;
    # the public lookups below turn that into an empty result.

    @log_external_call("wordpress", "media")
    @track_external_call("wordpress", "media")
    def _fetch_media(self, media_id: Any) -> Any:
        return self._get_json(f"{self.api_url}/media/{media_id}")

    @log_external_call("wordpress", "destination_image")
    @track_external_call("wordpress", "destination_image")
    def _fetch_destination_pages(self, slug: str) -> Any:
        return self._get_json(
            f"{self.api_url}/pages",
            params={"slug": slug, "per_page": 1, "_embed": "true"},
        )

    @log_external_call("wordpress", "property_image")
    @track_external_call("wordpress", "property_image")
    def _fetch_properties(self, property_name: str) -> Any:
        return self._get_json(
            f"{self.api_url}/properties",
            params={"search": property_name, "per_page": 1, "_embed": "true"},
        )

    @log_external_call("wordpress", "featured_offers")
    @track_external_call("wordpress", "featured_offers")
    def _fetch_featured_offers(self, limit: int) -> Any:
        return self._get_json(
            f"{self.api_url}/featured-offers",
            params={"per_page": limit, "orderby": "date", "order": "desc", "_embed": "true"},
        )

    def _media_source_url(self, media_id: Any) -> Optional[str]:
        try:
            data = self._fetch_media(media_id)
        except CMSError:
            return None
        if isinstance(data, dict):
            return data.get("source_url") or None
        return None

    def _first_item_image(self, items: Any) -> Optional[str]:
        if not isinstance(items, list) or not items or not isinstance(items[0], dict):
            return None
        item = items[0]
        image = _featured_image_from(item)
        if image:
            return image
        if item.get("featured_media"):
            return self._media_source_url(item["featured_media"])
        return None

    def get_destination_image(self, location: Optional[str]) -> Optional[str]:
        """Featured image of the destination page for a location"""
        slug = get_destination_slug(location)
        if not slug:
            return None
        try:
            pages = self._fetch_destination_pages(slug)
        except CMSError:
            return None
        return self._first_item_image(pages)

    def get_property_image(self, property_name: str, location: str = "") -> Optional[str]:
        """Featured image for a property, else its destination's image"""
        try:
            properties = self._fetch_properties(property_name)
        except CMSError:
            properties = None
        image = self._first_item_image(properties)
        if image:
            return image
        if location:
            return self.get_destination_image(location)
        return None

    def get_featured_offers(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Latest featured offers with ACF fields flattened"""
        try:
            offers = self._fetch_featured_offers(limit)
        except CMSError:
            return []
        if not isinstance(offers, list):
            return []

        result = []
        for offer in offers:
            if not isinstance(offer, dict):
                continue
            acf = offer.get("acf") or {}
            title = (offer.get("title") or {}).get("rendered") or ""
            image = _featured_image_from(offer)
            if not image and offer.get("featured_media"):
                image = self._media_source_url(offer["featured_media"])

            result.append({
                "id": offer.get("id"),
                "title": title,
                "content": (offer.get("content") or {}).get("rendered") or "",
                "featured_image": image or "",
                "offer_title": acf.get("offer_title") or title or "",
                "offer_subtitle": acf.get("offer_subtitle") or "",
                "offer_type": acf.get("offer_type") or "",
                "offer_link": acf.get("offer_link") or "",
            })
        return result
