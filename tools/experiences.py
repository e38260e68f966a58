"""
Destination experiences scraper

Reads the experience cards (title, description, image) from a destination
page on the marketing site. Strictly best-effort: callers get a ScrapeResult
holding either the experiences or a ScrapeFailure, never an exception.
"""
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests
from lxml import etree, html

from config import settings
from infrastructure.logging import get_logger
from infrastructure.metrics import metrics

logger = get_logger("experiences")

USER_AGENT = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36"
BACKGROUND_URL = re.compile(r"background-image:\s*url\(\s*[\"']?([^\"')]+)[\"']?\s*\)")

CARD_XPATH = "//*[contains(concat(' ', normalize-space(@class), ' '), ' elementor-icon-box-wrapper ')]"


def _class_xpath(css_class: str) -> str:
    return f".//*[contains(concat(' ', normalize-space(@class), ' '), ' {css_class} ')]"


@dataclass(frozen=True)
class Experience:
    title: str
    description: str
    image: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"title": self.title, "description": self.description, "image": self.image}


@dataclass(frozen=True)
class ScrapeFailure:
    url: str
    reason: str


@dataclass
class ScrapeResult:
    experiences: List[Experience] = field(default_factory=list)
    failure: Optional[ScrapeFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


def destination_url(slug: str, base_url: Optional[str] = None) -> str:
    base = (base_url or settings.WORDPRESS_BASE_URL).rstrip("/")
    return f"{base}/destinations/{slug}/"


def _text(node: Any, css_class: str) -> str:
    found = node.xpath(_class_xpath(css_class))
    if not found:
        return ""
    return " ".join(found[0].text_content().split())


def _card_image(card: Any) -> str:
    for icon in card.xpath(_class_xpath("elementor-icon")):
        sources = icon.xpath(".//img/@src")
        if sources:
            return sources[0]
        match = BACKGROUND_URL.search(icon.get("style", ""))
        if match:
            return match.group(1)

    # Image may sit on an enclosing elementor element instead of the card
    for ancestor in card.iterancestors():
        if "elementor-element" not in ancestor.get("class", "").split():
            continue
        for styled in ancestor.xpath(".//*[contains(@style, 'background-image')]"):
            match = BACKGROUND_URL.search(styled.get("style", ""))
            if match:
                return match.group(1)
        break
    return ""


def parse_experiences(page: str) -> List[Experience]:
    """Extract experience cards from destination page HTML"""
    document = html.fromstring(page)
    experiences = []
    for card in document.xpath(CARD_XPATH):
        title = _text(card, "elementor-icon-box-title")
        description = _text(card, "elementor-icon-box-description")
        if not title and not description:
            continue
        experiences.append(Experience(
            title=title or "Untitled Experience",
            description=description,
            image=_card_image(card),
        ))
    return experiences


def scrape_destination_experiences(
    slug: str,
    session: Optional[requests.Session] = None,
    base_url: Optional[str] = None,
    timeout: Optional[float] = None,
) -> ScrapeResult:
    """Fetch and parse a destination page's experiences"""
    url = destination_url(slug, base_url)
    session = session or requests.Session()
    logger.info("experience_scrape_started", url=url)

    try:
        response = session.get(
            url,
            headers={"User-Agent": USER_AGENT},
            timeout=timeout or settings.CMS_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        experiences = parse_experiences(response.text)
    except (requests.RequestException, etree.ParserError, ValueError) as e:
        logger.warning("experience_scrape_failed", url=url, error=str(e))
        metrics.record_experience_scrape(False)
        return ScrapeResult(failure=ScrapeFailure(url=url, reason=str(e)))

    logger.info("experience_scrape_completed", url=url, count=len(experiences))
    metrics.record_experience_scrape(True)
    return ScrapeResult(experiences=experiences)
